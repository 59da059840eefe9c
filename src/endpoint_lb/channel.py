"""Bounded, closable asyncio channel carrying endpoint changes."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterator, Deque, Generic, TypeVar

T = TypeVar("T")


class ChannelClosed(Exception):
    """Raised when sending to, or draining, a closed channel."""


class ChangeChannel(Generic[T]):
    """Single-producer channel with a fixed capacity.

    ``send`` waits while the buffer is full, which is how a slow consumer
    slows down the watch feeding it.  Either end may ``close`` the channel:
    pending and future sends fail with :class:`ChannelClosed`, while items
    already buffered can still be received.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("channel capacity must be at least 1")
        self._capacity = capacity
        self._buffer: Deque[T] = deque()
        self._closed = False
        self._cond = asyncio.Condition()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._buffer)

    async def send(self, item: T) -> None:
        async with self._cond:
            await self._cond.wait_for(
                lambda: self._closed or len(self._buffer) < self._capacity
            )
            if self._closed:
                raise ChannelClosed()
            self._buffer.append(item)
            self._cond.notify_all()

    async def recv(self) -> T:
        async with self._cond:
            await self._cond.wait_for(lambda: self._closed or bool(self._buffer))
            if not self._buffer:
                raise ChannelClosed()
            item = self._buffer.popleft()
            self._cond.notify_all()
            return item

    async def close(self) -> None:
        async with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.recv()
            except ChannelClosed:
                return
