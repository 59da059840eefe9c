"""Minimal EndpointSlice model consumed by the address extractor.

Only the fields the extractor needs are kept.  ``from_dict`` accepts the
JSON shape returned by the Kubernetes API (camelCase keys) and tolerates
missing keys, since the API omits unset optional fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence


@dataclass(frozen=True)
class EndpointPort:
    name: Optional[str] = None
    port: Optional[int] = None
    protocol: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EndpointPort":
        return cls(
            name=data.get("name"),
            port=data.get("port"),
            protocol=data.get("protocol"),
        )


@dataclass(frozen=True)
class Endpoint:
    """One endpoint entry of a slice.

    ``ready`` is ``None`` when the API did not report the condition, which
    consumers must treat as ready.
    """

    addresses: Sequence[str] = ()
    ready: Optional[bool] = None
    target: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Endpoint":
        conditions = data.get("conditions") or {}
        target_ref = data.get("targetRef") or {}
        return cls(
            addresses=tuple(str(a) for a in data.get("addresses") or ()),
            ready=conditions.get("ready"),
            target=target_ref.get("name"),
        )


@dataclass(frozen=True)
class EndpointSlice:
    """A single revision of a ``discovery.k8s.io/v1`` EndpointSlice."""

    endpoints: Sequence[Endpoint] = ()
    ports: Optional[Sequence[EndpointPort]] = None
    name: Optional[str] = None
    namespace: Optional[str] = None
    resource_version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EndpointSlice":
        metadata = data.get("metadata") or {}
        ports = data.get("ports")
        return cls(
            endpoints=tuple(Endpoint.from_dict(e) for e in data.get("endpoints") or ()),
            ports=None if ports is None else tuple(EndpointPort.from_dict(p) for p in ports),
            name=metadata.get("name"),
            namespace=metadata.get("namespace"),
            resource_version=metadata.get("resourceVersion"),
        )

    def describe(self) -> str:
        if self.namespace and self.name:
            return f"{self.namespace}/{self.name}"
        return self.name or "<unnamed slice>"
