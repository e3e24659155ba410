"""structlog setup for the gitlab-collect CLI. Logs go to stderr."""

from __future__ import annotations

import logging.config
import os

import structlog


def setup_logging(level: str | None = None) -> None:
    """Route structlog events through stdlib logging to stderr.

    *level* (``--verbose``) overrides ``GITLAB_COLLECTOR_LOG_LEVEL`` (default
    INFO). ``GITLAB_COLLECTOR_LOG_FORMAT=json`` switches from console output
    to one JSON object per line.
    """
    log_level = (level or os.environ.get("GITLAB_COLLECTOR_LOG_LEVEL", "INFO")).upper()
    as_json = os.environ.get("GITLAB_COLLECTOR_LOG_FORMAT", "console").lower() == "json"

    pre_chain: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    renderer = (
        structlog.processors.JSONRenderer() if as_json else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {"handlers": ["stderr"], "level": log_level},
            # httpx logs every request at INFO.
            "loggers": {"httpx": {"level": "WARNING"}},
        }
    )
