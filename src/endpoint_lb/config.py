"""Configuration data structures for endpoint discovery.

These light-weight dataclasses describe what a discovery watch looks at (a
service, an optional namespace and the port to advertise) and the address
key used for every change sent downstream.  They carry no dependency on the
Kubernetes client so the reconciliation logic can be exercised in tests
without a cluster.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, replace
from typing import Optional, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

MAX_PORT = 65535


@dataclass(frozen=True)
class PortNumber:
    """A numeric port, used as-is for every slice."""

    number: int

    def __post_init__(self) -> None:
        if isinstance(self.number, bool) or not isinstance(self.number, int):
            raise TypeError(f"port number must be an int, got {self.number!r}")
        if not 0 <= self.number <= MAX_PORT:
            raise ValueError(f"port number {self.number} outside 0-{MAX_PORT}")

    def __str__(self) -> str:
        return str(self.number)


@dataclass(frozen=True)
class PortName:
    """A named port, resolved against each slice's own port table."""

    name: str

    def __str__(self) -> str:
        return self.name


Port = Union[PortNumber, PortName]


def port_from(value: Union[int, str, PortNumber, PortName]) -> Port:
    """Convert ``value`` into a port specifier.

    Integers become :class:`PortNumber`, strings become :class:`PortName`.
    Numeric strings stay names; callers that read ports from text decide
    themselves whether ``"50051"`` means a number.
    """

    if isinstance(value, (PortNumber, PortName)):
        return value
    if isinstance(value, bool):
        raise TypeError("port cannot be a boolean")
    if isinstance(value, int):
        return PortNumber(value)
    if isinstance(value, str):
        if not value:
            raise ValueError("port name cannot be empty")
        return PortName(value)
    raise TypeError(f"unsupported port value {value!r}")


@dataclass(frozen=True)
class Address:
    """A resolved socket address; the key of every downstream change."""

    ip: IPAddress
    port: int

    @classmethod
    def parse(cls, text: str) -> "Address":
        """Parse ``10.0.0.1:50051`` or ``[::1]:50051``."""

        if text.startswith("["):
            host, sep, port = text[1:].partition("]:")
            if not sep:
                raise ValueError(f"invalid address '{text}'")
        else:
            host, sep, port = text.rpartition(":")
            if not sep or ":" in host:
                raise ValueError(f"invalid address '{text}'")
        return cls(ipaddress.ip_address(host), int(port))

    def __str__(self) -> str:
        if self.ip.version == 6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


@dataclass(frozen=True)
class DiscoveryConfig:
    """Describes the service a discovery watch follows.

    Attributes
    ----------
    service_name:
        Name of the Kubernetes service whose endpoint slices are watched.
    namespace:
        Namespace of the service.  ``None`` means the ambient namespace of
        the client (in-cluster service account or kubeconfig context).
    port:
        The port to advertise, either a number or a name looked up in each
        slice's port table.
    """

    service_name: str
    port: Port
    namespace: Optional[str] = None

    @classmethod
    def new(
        cls, service_name: str, port: Union[int, str, PortNumber, PortName]
    ) -> "DiscoveryConfig":
        if not service_name:
            raise ValueError("service name cannot be empty")
        return cls(service_name=service_name, port=port_from(port))

    def with_namespace(self, namespace: str) -> "DiscoveryConfig":
        return replace(self, namespace=namespace)
