"""Async GitLab REST API (v4) client with pagination and transient-error retries."""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import structlog

from gitlab_collector.exceptions import ClientConstructionError, TransportError

log = structlog.get_logger("gitlab_collector.engine")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')
_BASE_URL_RE = re.compile(r"^https?://[^/\s]+$")

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds
_PER_PAGE = 100


class RateLimitError(TransportError):
    """Raised when GitLab answers 429. The request is not retried."""

    def __init__(self, url: str, retry_after: int | None = None) -> None:
        self.url = url
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded for {url}")


class GitLabClient:
    """Thin async wrapper around the GitLab REST API of one instance, one token."""

    def __init__(self, base_url: str, token: str, *, timeout: float = 30.0) -> None:
        base_url = base_url.rstrip("/")
        if not _BASE_URL_RE.match(base_url):
            raise ClientConstructionError(f"invalid GitLab base url: {base_url!r}")
        if not token or not token.isascii() or not token.isprintable() or token != token.strip():
            raise ClientConstructionError(f"invalid GitLab token for {base_url}")

        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=f"{base_url}/api/v4",
            headers={"PRIVATE-TOKEN": token, "Accept": "application/json"},
            timeout=timeout,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitLabClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Single GET returning parsed JSON. Raises on any non-2xx status."""
        response = await self._request_with_retry(path, params)
        response.raise_for_status()
        return response.json()

    async def get_response(
        self, path: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        """Single GET returning the raw response, whatever its status.

        Used by best-effort lookups that treat a non-2xx answer as "no data".
        """
        return await self._request_with_retry(path, params)

    async def get_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        max_pages: int | None = None,
    ) -> AsyncGenerator[Any, None]:
        """Yield JSON items from a paginated endpoint.

        Follows ``Link: <...>; rel="next"`` headers. ``max_pages=None``
        walks every page.
        A next link on another host raises TransportError instead of being
        sent the token.
        """
        url: str | None = path
        params = dict(params or {})
        params.setdefault("per_page", _PER_PAGE)
        page = 0

        while url and (max_pages is None or page < max_pages):
            # The next link already carries the query string.
            response = await self._request_with_retry(url, params if page == 0 else None)
            response.raise_for_status()

            data = response.json()
            if isinstance(data, list):
                for item in data:
                    yield item
            else:
                yield data

            url = self._next_url(response)
            page += 1

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """GET with exponential backoff on 5xx and timeouts.

        4xx responses are returned to the caller untouched, except 429 which
        raises :class:`RateLimitError`.
        """
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.get(url, params=params)

                if resp.status_code == 429:
                    raise RateLimitError(url, self._parse_header_int(resp.headers.get("Retry-After")))

                if resp.status_code < 500:
                    return resp

                log.warning(
                    "gitlab.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TimeoutException as exc:
                log.warning(
                    "gitlab.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = exc

            if attempt < _MAX_RETRIES - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        """Safely parse an integer header value."""
        if value is None:
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None

    def _next_url(self, response: httpx.Response) -> str | None:
        """Absolute ``next`` URL of *response*, which must stay on this instance."""
        link = self._parse_next_link(response.headers.get("Link", ""))
        if link is None:
            return None
        own = httpx.URL(self.base_url)
        target = own.join(link)
        if (target.scheme, target.host, target.port) != (own.scheme, own.host, own.port):
            raise TransportError(f"refusing to follow pagination link to {link!r}")
        return str(target)

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from a ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None
