"""Endpoint discovery for client-side load balancing.

HTTP/2 based transports such as gRPC multiplex every request over a single
long-lived connection, so a plain ``ClusterIP`` service pins all traffic to
whichever backend the connection happened to reach.  This package watches the
EndpointSlices of a service and turns them into ``Insert`` / ``Remove``
changes that a client-side pool can use to hold one connection per ready
replica.

The package is transport-agnostic: callers provide the watch event source,
the channel the changes are delivered on and a ``build`` callback mapping an
address to their own connection descriptor.  The Kubernetes watch source and
a reference pool live in :mod:`endpoint_lb_agent`.
"""

from .channel import ChangeChannel, ChannelClosed  # noqa: F401
from .config import (  # noqa: F401
    Address,
    DiscoveryConfig,
    Port,
    PortName,
    PortNumber,
    port_from,
)
from .discovery import discover, run_discovery  # noqa: F401
from .emitter import Change, ChangeEmitter, Insert, Remove  # noqa: F401
from .events import Apply, Delete, Init, InitApply, InitDone, WatchEvent  # noqa: F401
from .extract import extract_ready_endpoints, resolve_port  # noqa: F401
from .reconcile import (  # noqa: F401
    ActionKind,
    EndpointAction,
    EndpointReconciler,
    process_event,
)
from .resources import Endpoint, EndpointPort, EndpointSlice  # noqa: F401

__all__ = [
    "ActionKind",
    "Address",
    "Apply",
    "Change",
    "ChangeChannel",
    "ChangeEmitter",
    "ChannelClosed",
    "Delete",
    "DiscoveryConfig",
    "Endpoint",
    "EndpointAction",
    "EndpointPort",
    "EndpointReconciler",
    "EndpointSlice",
    "Init",
    "InitApply",
    "InitDone",
    "Insert",
    "Port",
    "PortName",
    "PortNumber",
    "Remove",
    "WatchEvent",
    "discover",
    "extract_ready_endpoints",
    "port_from",
    "process_event",
    "resolve_port",
    "run_discovery",
]
