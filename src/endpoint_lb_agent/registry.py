"""Registry running one discovery task per configured watch."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterable, Callable, Dict, Optional

from endpoint_lb.channel import ChangeChannel
from endpoint_lb.config import Address, DiscoveryConfig
from endpoint_lb.discovery import discover
from endpoint_lb.emitter import Change
from endpoint_lb.events import WatchEvent

from .pool import EndpointPool

LOG = logging.getLogger(__name__)


class ManagedWatch:
    """A discovery task wired to its own channel and endpoint pool."""

    def __init__(
        self,
        config: DiscoveryConfig,
        events: Callable[[], AsyncIterable[WatchEvent]],
        build: Callable[[Address], object],
        *,
        capacity: int = 1024,
        pool: Optional[EndpointPool] = None,
    ) -> None:
        self.config = config
        self.pool = pool or EndpointPool(config.service_name)
        self._events = events
        self._build = build
        self._capacity = capacity

    async def run(self) -> None:
        channel: ChangeChannel[Change] = ChangeChannel(self._capacity)
        consumer = asyncio.create_task(self.pool.consume(channel))
        task = discover(self.config, channel, self._build, self._events())
        try:
            await task
        finally:
            if not task.done():
                task.cancel()
            await channel.close()
            await consumer


class WatchRegistry:
    """Start, stop and supervise named watches.

    Each watch runs in its own task with its own known set and channel; a
    failing watch is reported but never touches the others.
    """

    def __init__(self) -> None:
        self._watches: Dict[str, ManagedWatch] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._watches

    def register(self, name: str, watch: ManagedWatch) -> None:
        if name in self._watches:
            raise ValueError(f"watch '{name}' already registered")
        self._watches[name] = watch

    def unregister(self, name: str) -> None:
        self._watches.pop(name, None)
        task = self._tasks.pop(name, None)
        if task is not None:
            task.cancel()

    def start(self) -> None:
        for name, watch in self._watches.items():
            if name in self._tasks:
                continue
            LOG.info(
                "starting watch %s (service=%s, port=%s)",
                name,
                watch.config.service_name,
                watch.config.port,
            )
            self._tasks[name] = asyncio.create_task(watch.run(), name=f"watch-{name}")

    async def stop(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def wait(self) -> Dict[str, Optional[BaseException]]:
        """Wait for every started watch and report how each one ended.

        Cancelled watches report ``None``, like watches whose stream ended.
        """

        names = list(self._tasks)
        results = await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        outcome: Dict[str, Optional[BaseException]] = {}
        for name, result in zip(names, results):
            if isinstance(result, asyncio.CancelledError) or not isinstance(result, BaseException):
                outcome[name] = None
            else:
                LOG.error("watch %s stopped: %s", name, result)
                outcome[name] = result
        return outcome
