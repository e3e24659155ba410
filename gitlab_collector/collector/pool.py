"""Fixed-size pool of RepositoryHost clients for one GitLab instance."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager

import structlog

from gitlab_collector.collector.host import GitLabHost, RepositoryHost
from gitlab_collector.exceptions import PoolConstructionError

log = structlog.get_logger("gitlab_collector.engine")

HostFactory = Callable[[str, str], RepositoryHost]


class ClientPool:
    """Checkout/checkin pool; its size is fixed at construction.

    A host is never handed to two tasks at once, and ``checkout()`` puts it
    back on every exit path, including errors and cancellation.
    """

    def __init__(self, base_url: str, hosts: Sequence[RepositoryHost]) -> None:
        if not hosts:
            raise PoolConstructionError(base_url, "no clients")
        self.base_url = base_url
        self._hosts = list(hosts)
        self._idle: asyncio.Queue[RepositoryHost] = asyncio.Queue()
        for host in self._hosts:
            self._idle.put_nowait(host)

    @property
    def size(self) -> int:
        return len(self._hosts)

    @property
    def available(self) -> int:
        return self._idle.qsize()

    @asynccontextmanager
    async def checkout(self) -> AsyncIterator[RepositoryHost]:
        """Wait for an idle host and lend it for the duration of the block."""
        host = await self._idle.get()
        try:
            yield host
        finally:
            self._idle.put_nowait(host)

    async def aclose(self) -> None:
        """Close every host. Close errors are logged, not raised."""
        results = await asyncio.gather(
            *(host.aclose() for host in self._hosts), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                log.warning("pool.close_failed", instance=self.base_url, error=str(result))


async def create_pool(
    base_url: str,
    tokens: Sequence[str],
    factory: HostFactory = GitLabHost.create,
) -> ClientPool:
    """Build one host per token, in order.

    The first construction failure closes the hosts already built and is
    raised as :class:`PoolConstructionError`.
    """
    if not tokens:
        raise PoolConstructionError(base_url, "no tokens")

    hosts: list[RepositoryHost] = []
    for index, token in enumerate(tokens):
        try:
            hosts.append(factory(base_url, token))
        except Exception as exc:
            for host in hosts:
                await host.aclose()
            raise PoolConstructionError(
                base_url, f"client #{index + 1} failed: {exc}"
            ) from exc

    log.debug("pool.created", instance=base_url, size=len(hosts))
    return ClientPool(base_url, hosts)
