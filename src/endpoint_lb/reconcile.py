"""Reconcile watch events against the set of advertised addresses."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, MutableSet

from .config import Address, Port
from .events import Apply, Delete, Init, InitApply, InitDone, WatchEvent
from .extract import extract_ready_endpoints

LOG = logging.getLogger(__name__)


class ActionKind(Enum):
    INSERT = "insert"
    REMOVE = "remove"


@dataclass(frozen=True)
class EndpointAction:
    """A single change to the advertised address set."""

    kind: ActionKind
    address: Address

    @classmethod
    def insert(cls, address: Address) -> "EndpointAction":
        return cls(ActionKind.INSERT, address)

    @classmethod
    def remove(cls, address: Address) -> "EndpointAction":
        return cls(ActionKind.REMOVE, address)


def process_event(
    event: WatchEvent, known: MutableSet[Address], port: Port
) -> List[EndpointAction]:
    """Apply ``event`` to ``known`` and return the actions it produced.

    Apply events only ever add addresses, delete events only ever remove
    addresses that are currently known, and list markers are no-ops.  Each
    address is added to (or removed from) ``known`` in the same step that
    records its action, so ``known`` and the returned diff always agree.
    """

    actions: List[EndpointAction] = []

    if isinstance(event, (Apply, InitApply)):
        for addr in extract_ready_endpoints(event.slice, port):
            if addr not in known:
                known.add(addr)
                LOG.debug("adding endpoint: %s", addr)
                actions.append(EndpointAction.insert(addr))
    elif isinstance(event, Delete):
        for addr in extract_ready_endpoints(event.slice, port):
            if addr in known:
                known.discard(addr)
                LOG.debug("removing endpoint: %s", addr)
                actions.append(EndpointAction.remove(addr))
    elif isinstance(event, (Init, InitDone)):
        LOG.debug("watcher initialization event: %s", type(event).__name__)
    else:
        raise TypeError(f"Unsupported event type: {type(event)!r}")

    return actions


class EndpointReconciler:
    """Owns the known address set of a single watch."""

    def __init__(self, port: Port) -> None:
        self._port = port
        self._known: set[Address] = set()

    @property
    def port(self) -> Port:
        return self._port

    @property
    def known(self) -> FrozenSet[Address]:
        return frozenset(self._known)

    def __len__(self) -> int:
        return len(self._known)

    def process(self, event: WatchEvent) -> List[EndpointAction]:
        return process_event(event, self._known, self._port)
