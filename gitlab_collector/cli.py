"""CLI entry point: gitlab-collect.

Subcommands:
    gitlab-collect collect catalog.json          # Collect data, update the cache
    gitlab-collect parse-url URL                 # Show how a URL is routed
    gitlab-collect tokens                        # Show configured instances
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from gitlab_collector.catalog import load_catalog
from gitlab_collector.collector.codec import encode
from gitlab_collector.collector.credentials import parse_tokens, tokens_from_env
from gitlab_collector.collector.runner import GitLabCollector
from gitlab_collector.core.cache import LocalCache
from gitlab_collector.core.config import load_settings
from gitlab_collector.core.gitlab import parse_gitlab_url
from gitlab_collector.core.logging import setup_logging
from gitlab_collector.exceptions import CacheError, CatalogError


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """gitlab-collect: enrich catalog repositories with GitLab metadata."""
    setup_logging("DEBUG" if verbose else None)


@main.command("collect")
@click.argument("catalog_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--cache-dir", default=None, help="Cache directory (default: $GITLAB_COLLECTOR_CACHE_DIR)")
@click.option(
    "-o",
    "--output",
    default=None,
    help="Also write the collected data to this file ('-' for stdout)",
)
def collect(catalog_file: str, cache_dir: str | None, output: str | None) -> None:
    """Collect GitLab data for every repository in CATALOG_FILE."""
    try:
        settings = load_settings()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    try:
        catalog = load_catalog(catalog_file)
    except CatalogError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    collector = GitLabCollector(
        LocalCache(cache_dir or settings.cache_dir),
        credentials=parse_tokens(settings.tokens),
        ttl=settings.cache_ttl,
        task_timeout=settings.task_timeout,
    )

    try:
        result = asyncio.run(collector.collect(catalog))
    except CacheError as e:
        click.echo(f"Error: cache write failed: {e}", err=True)
        sys.exit(1)

    if output == "-":
        click.echo(encode(result).decode(), nl=False)
    elif output:
        Path(output).write_bytes(encode(result))

    stats = collector.stats
    click.echo(f"Collected {len(result)} of {stats.discovered} GitLab repositories", err=True)
    click.echo(f"  reused from cache: {stats.reused}", err=True)
    click.echo(f"  fetched:           {stats.fetched}", err=True)
    click.echo(f"  failed:            {stats.failed}", err=True)
    click.echo(f"  skipped:           {stats.skipped}", err=True)


@main.command("parse-url")
@click.argument("url")
def parse_url(url: str) -> None:
    """Show the instance and project path a repository URL routes to."""
    parsed = parse_gitlab_url(url)
    if parsed is None:
        click.echo(f"Not a GitLab repository URL: {url}", err=True)
        sys.exit(1)
    base_url, project_path = parsed
    click.echo(json.dumps({"instance": base_url, "project_path": project_path}))


@main.command("tokens")
def tokens() -> None:
    """List configured GitLab instances and how many tokens each has."""
    configs = tokens_from_env()
    if not configs:
        click.echo("No GitLab tokens configured (set GITLAB_TOKENS).")
        return
    for config in configs:
        click.echo(f"{config.base_url}: {len(config.tokens)} token(s)")
