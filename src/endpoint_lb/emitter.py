"""Turn endpoint actions into change messages for the consumer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, TypeVar, Union

from .channel import ChangeChannel, ChannelClosed
from .config import Address
from .reconcile import ActionKind, EndpointAction

LOG = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Insert(Generic[T]):
    """Add (or replace) the endpoint keyed by ``key``."""

    key: Address
    endpoint: T


@dataclass(frozen=True)
class Remove:
    """Drop the endpoint keyed by ``key``."""

    key: Address


Change = Union[Insert, Remove]


class ChangeEmitter(Generic[T]):
    """Deliver actions to a :class:`ChangeChannel`, one message at a time.

    ``build`` maps an address to whatever the consumer needs to open a
    connection.  It is called once per insert, inside the watch task.
    """

    def __init__(
        self, channel: ChangeChannel[Change], build: Callable[[Address], T]
    ) -> None:
        self._channel = channel
        self._build = build

    async def emit(self, actions: Iterable[EndpointAction]) -> bool:
        """Send ``actions`` in order; return ``False`` if the channel closed."""

        for action in actions:
            if action.kind is ActionKind.INSERT:
                change: Change = Insert(action.address, self._build(action.address))
            else:
                change = Remove(action.address)
            try:
                await self._channel.send(change)
            except ChannelClosed:
                return False
        return True
