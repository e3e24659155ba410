"""GitLabCollector — orchestrates cache reuse, client pools and bounded fetches."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

import structlog

from gitlab_collector.catalog import Catalog
from gitlab_collector.collector.codec import CACHE_KEY, DEFAULT_TTL, decode, encode, is_fresh
from gitlab_collector.collector.credentials import (
    find_credentials,
    parse_tokens,
    tokens_from_env,
    total_tokens,
)
from gitlab_collector.collector.fetcher import collect_repository
from gitlab_collector.collector.host import GitLabHost, RepositoryHost
from gitlab_collector.collector.models import (
    CollectionResult,
    InstanceCredentials,
    RepositorySnapshot,
    RunStats,
)
from gitlab_collector.collector.pool import ClientPool, HostFactory, create_pool
from gitlab_collector.core.cache import Cache
from gitlab_collector.core.gitlab import parse_gitlab_url
from gitlab_collector.exceptions import CacheError, PoolConstructionError

log = structlog.get_logger("gitlab_collector.engine")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def group_by_instance(urls: Iterable[str]) -> dict[str, list[str]]:
    """Group GitLab repository URLs by instance base URL.

    URLs the router rejects are dropped. Each instance's list is
    deduplicated and sorted.
    """
    grouped: dict[str, set[str]] = {}
    for url in dict.fromkeys(urls):
        parsed = parse_gitlab_url(url)
        if parsed is None:
            continue
        grouped.setdefault(parsed[0], set()).add(url)
    return {base: sorted(grouped[base]) for base in sorted(grouped)}


class GitLabCollector:
    """Collect GitLab data for every catalog repository, reusing fresh cache entries.

    1. Discover repository URLs and group them by instance
    2. Load the previous cache (missing or corrupt -> empty)
    3. Build one client pool per instance that has credentials
    4. Reuse fresh snapshots, fetch the rest with bounded concurrency
    5. Drop failures and write the new cache
    """

    def __init__(
        self,
        cache: Cache,
        *,
        credentials: list[InstanceCredentials],
        host_factory: HostFactory = GitLabHost.create,
        ttl: timedelta = DEFAULT_TTL,
        task_timeout: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._cache = cache
        self._credentials = list(credentials)
        self._host_factory = host_factory
        self._ttl = ttl
        self._task_timeout = task_timeout
        self._clock = clock
        self.stats = RunStats()

    @property
    def concurrency(self) -> int:
        """Global cap on in-flight fetches: every configured token, at least 1."""
        return max(total_tokens(self._credentials), 1)

    async def collect(self, catalog: Catalog) -> CollectionResult:
        """Run a full collection and persist it.

        Per-repository and per-instance failures are logged and absorbed.
        Only a failing cache write is raised (CacheError).
        """
        self.stats = RunStats()
        log.debug("collector.start")

        repos_by_instance = group_by_instance(catalog.repository_urls())
        self.stats.discovered = sum(len(urls) for urls in repos_by_instance.values())
        log.debug(
            "collector.discovered",
            instances=list(repos_by_instance),
            repositories=self.stats.discovered,
        )

        cached = self._load_cache()
        pools = await self._build_pools(repos_by_instance)
        try:
            result = await self._dispatch(repos_by_instance, cached, pools)
        finally:
            await asyncio.gather(*(pool.aclose() for pool in pools.values()))

        self._cache.write(CACHE_KEY, encode(result))

        log.info(
            "collector.done",
            collected=len(result),
            reused=self.stats.reused,
            fetched=self.stats.fetched,
            failed=self.stats.failed,
            skipped=self.stats.skipped,
        )
        return result

    # ── stages ─────────────────────────────────────────────────────────────

    def _load_cache(self) -> CollectionResult:
        try:
            data = self._cache.read(CACHE_KEY)
        except CacheError as exc:
            log.warning("collector.cache_read_failed", error=str(exc))
            return {}
        if data is None:
            return {}
        try:
            return decode(data)
        except CacheError as exc:
            log.warning("collector.cache_corrupt", error=str(exc))
            return {}

    async def _build_pools(self, repos_by_instance: dict[str, list[str]]) -> dict[str, ClientPool]:
        pools: dict[str, ClientPool] = {}
        for base_url, urls in repos_by_instance.items():
            config = find_credentials(base_url, self._credentials)
            if config is None:
                log.warning(
                    "collector.no_credentials",
                    instance=base_url,
                    repositories=len(urls),
                )
                continue
            try:
                pools[base_url] = await create_pool(base_url, config.tokens, self._host_factory)
            except PoolConstructionError as exc:
                log.error(
                    "collector.pool_failed",
                    instance=base_url,
                    repositories=len(urls),
                    error=exc.reason,
                )
                self.stats.errors.append(str(exc))

        if not pools and repos_by_instance:
            log.warning("collector.no_pools", detail="no information will be fetched from gitlab")
        return pools

    async def _dispatch(
        self,
        repos_by_instance: dict[str, list[str]],
        cached: CollectionResult,
        pools: dict[str, ClientPool],
    ) -> CollectionResult:
        sem = asyncio.Semaphore(self.concurrency)
        now = self._clock()

        async def _run_one(url: str) -> tuple[str, RepositorySnapshot | None]:
            snapshot = cached.get(url)
            if snapshot is not None and is_fresh(snapshot, now=now, ttl=self._ttl):
                log.debug("collector.cache_hit", repo=url)
                self.stats.reused += 1
                return url, snapshot

            parsed = parse_gitlab_url(url)
            if parsed is None:
                self._record_failure(url, "invalid gitlab url")
                return url, None

            pool = pools.get(parsed[0])
            if pool is None:
                log.debug("collector.skipped", repo=url, reason="no client pool for instance")
                self.stats.skipped += 1
                return url, None

            # Checkout before the permit: tasks waiting on a busy instance hold none.
            try:
                async with pool.checkout() as host, sem:
                    log.debug("collector.fetch", repo=url)
                    fresh = await self._fetch(host, url)
            except Exception as exc:
                self._record_failure(url, f"{type(exc).__name__}: {exc}")
                return url, None

            self.stats.fetched += 1
            return url, fresh

        urls = [url for group in repos_by_instance.values() for url in group]
        outcomes = await asyncio.gather(*(_run_one(url) for url in urls))
        return {url: snapshot for url, snapshot in outcomes if snapshot is not None}

    async def _fetch(self, host: RepositoryHost, url: str) -> RepositorySnapshot:
        fetch = collect_repository(host, url, clock=self._clock)
        if self._task_timeout is None:
            return await fetch
        return await asyncio.wait_for(fetch, timeout=self._task_timeout)

    def _record_failure(self, url: str, error: str) -> None:
        log.error("collector.fetch_failed", repo=url, error=error)
        self.stats.failed += 1
        self.stats.errors.append(f"{url}: {error}")


async def collect_gitlab_data(
    cache: Cache,
    catalog: Catalog,
    *,
    tokens: str | None = None,
    **options,
) -> CollectionResult:
    """Collect with credentials from *tokens*, or ``GITLAB_TOKENS`` if not given."""
    credentials = parse_tokens(tokens) if tokens is not None else tokens_from_env()
    collector = GitLabCollector(cache, credentials=credentials, **options)
    return await collector.collect(catalog)
