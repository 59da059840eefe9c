"""Extract ready socket addresses from an EndpointSlice revision."""

from __future__ import annotations

import ipaddress
import logging
from typing import Optional, Set

from .config import MAX_PORT, Address, Port, PortName, PortNumber
from .resources import EndpointSlice

LOG = logging.getLogger(__name__)


def resolve_port(slice_: EndpointSlice, port: Port) -> Optional[int]:
    """Return the port number ``port`` denotes for ``slice_``.

    Named ports are looked up in the slice's own port table; ``None`` means
    the slice does not expose the requested port.
    """

    if isinstance(port, PortNumber):
        return port.number
    if isinstance(port, PortName):
        for entry in slice_.ports or ():
            if entry.name == port.name:
                number = entry.port
                if number is None or not 0 <= number <= MAX_PORT:
                    return None
                return number
        return None
    raise TypeError(f"Unsupported port specifier: {type(port)!r}")


def extract_ready_endpoints(slice_: EndpointSlice, port: Port) -> Set[Address]:
    number = resolve_port(slice_, port)
    if number is None:
        LOG.debug("slice %s does not expose port %s", slice_.describe(), port)
        return set()

    addrs: Set[Address] = set()
    for endpoint in slice_.endpoints:
        # An unset readiness condition means ready.
        if endpoint.ready is False:
            continue
        for raw in endpoint.addresses:
            try:
                ip = ipaddress.ip_address(raw)
            except ValueError:
                LOG.debug("skipping invalid address %r in slice %s", raw, slice_.describe())
                continue
            addrs.add(Address(ip, number))
    return addrs
