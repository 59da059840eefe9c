"""Reference consumer holding the current endpoint set of a watch.

The pool plays the role of a client-side balance channel: it applies
``Insert`` / ``Remove`` changes keyed by address and hands out targets in
round-robin order.  It does not open connections itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

from endpoint_lb.channel import ChangeChannel
from endpoint_lb.config import Address
from endpoint_lb.emitter import Change, Insert, Remove

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionTarget:
    uri: str
    connect_timeout: float = 5.0


def build_target(scheme: str = "http", connect_timeout: float = 5.0) -> Callable[[Address], ConnectionTarget]:
    """Return a build callback producing ``<scheme>://<address>`` targets."""

    def _build(addr: Address) -> ConnectionTarget:
        return ConnectionTarget(uri=f"{scheme}://{addr}", connect_timeout=connect_timeout)

    return _build


class EndpointPool:
    """Track endpoints by address and pick them in rotation."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._endpoints: Dict[Address, ConnectionTarget] = {}
        self._cursor = 0
        self._channel: ChangeChannel[Change] | None = None

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        return len(self._endpoints)

    def __contains__(self, addr: Address) -> bool:
        return addr in self._endpoints

    def targets(self) -> List[ConnectionTarget]:
        return list(self._endpoints.values())

    def apply(self, change: Change) -> None:
        if isinstance(change, Insert):
            self._endpoints[change.key] = change.endpoint
            LOG.info("[%s] endpoint added: %s", self._name, change.key)
        elif isinstance(change, Remove):
            if self._endpoints.pop(change.key, None) is not None:
                LOG.info("[%s] endpoint removed: %s", self._name, change.key)
        else:
            raise TypeError(f"Unsupported change type: {type(change)!r}")

    def pick(self) -> ConnectionTarget:
        if not self._endpoints:
            raise LookupError(f"pool '{self._name}' has no ready endpoints")
        targets = list(self._endpoints.values())
        target = targets[self._cursor % len(targets)]
        self._cursor = (self._cursor + 1) % len(targets)
        return target

    async def consume(self, channel: ChangeChannel[Change]) -> None:
        """Apply changes from ``channel`` until it is closed and drained."""

        self._channel = channel
        async for change in channel:
            self.apply(change)
        LOG.debug("[%s] change channel closed with %d endpoints", self._name, len(self))

    async def close(self) -> None:
        if self._channel is not None:
            await self._channel.close()
