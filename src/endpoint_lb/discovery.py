"""Discovery loop feeding endpoint changes to a consumer channel.

A discovery watch is a single asyncio task.  It reads events from a watch
source, reconciles them against the addresses it has already advertised and
pushes the resulting changes into a bounded :class:`ChangeChannel`.  The
task is the only writer of its known address set, so no locking is needed.

The task ends when:

* the watch source is exhausted (normal return);
* the consumer closes the channel (normal return, logged as a warning);
* the watch source raises (logged and propagated to whoever awaits the task);
* the task is cancelled.  No removal messages are sent in that case, the
  consumer owns cleanup of the connections it holds.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterable, Callable, TypeVar

from .channel import ChangeChannel
from .config import Address, DiscoveryConfig
from .emitter import Change, ChangeEmitter
from .events import WatchEvent
from .reconcile import EndpointReconciler

LOG = logging.getLogger(__name__)

T = TypeVar("T")


async def run_discovery(
    events: AsyncIterable[WatchEvent],
    channel: ChangeChannel[Change],
    config: DiscoveryConfig,
    build: Callable[[Address], T],
) -> None:
    reconciler = EndpointReconciler(config.port)
    emitter = ChangeEmitter(channel, build)

    LOG.debug(
        "Starting endpoint discovery for %s on port %s",
        config.service_name,
        config.port,
    )

    try:
        async for event in events:
            actions = reconciler.process(event)
            if not await emitter.emit(actions):
                LOG.warning(
                    "channel closed, stopping endpoint discovery for %s",
                    config.service_name,
                )
                return
            LOG.debug(
                "endpoint discovery: %d endpoints for %s",
                len(reconciler),
                config.service_name,
            )
    finally:
        # Closes any watch request the source still holds open.
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()

    LOG.info("watch stream for %s ended", config.service_name)


async def _run_logged(
    events: AsyncIterable[WatchEvent],
    channel: ChangeChannel[Change],
    config: DiscoveryConfig,
    build: Callable[[Address], T],
) -> None:
    try:
        await run_discovery(events, channel, config, build)
    except Exception as exc:
        LOG.error("endpoint watcher for %s failed: %s", config.service_name, exc)
        raise


def discover(
    config: DiscoveryConfig,
    channel: ChangeChannel[Change],
    build: Callable[[Address], T],
    events: AsyncIterable[WatchEvent],
) -> "asyncio.Task[None]":
    """Start a discovery task for ``config`` and return it.

    Must be called from a running event loop.  Awaiting the returned task
    re-raises any watch source failure; cancelling it stops the watch.
    """

    return asyncio.get_running_loop().create_task(
        _run_logged(events, channel, config, build),
        name=f"endpoint-discovery-{config.service_name}",
    )
