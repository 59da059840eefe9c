"""Watch event primitives consumed by the reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .resources import EndpointSlice


@dataclass(frozen=True)
class Apply:
    """A slice was added or modified after the initial listing."""

    slice: EndpointSlice


@dataclass(frozen=True)
class InitApply:
    """A slice reported while (re)listing the current state."""

    slice: EndpointSlice


@dataclass(frozen=True)
class Delete:
    """A slice was deleted; carries its last known revision."""

    slice: EndpointSlice


@dataclass(frozen=True)
class Init:
    """Marks the start of a (re)list."""


@dataclass(frozen=True)
class InitDone:
    """Marks the end of a (re)list."""


WatchEvent = Union[Apply, InitApply, Delete, Init, InitDone]
