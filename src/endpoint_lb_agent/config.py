"""YAML configuration loader for the endpoint-lb agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import yaml

from endpoint_lb.config import DiscoveryConfig, Port, port_from


@dataclass
class KubernetesConfig:
    kubeconfig: Optional[Path] = None
    context: Optional[str] = None


@dataclass
class BackoffConfig:
    initial: float = 0.8
    maximum: float = 30.0
    factor: float = 2.0
    max_retries: Optional[int] = None

    def delay(self, attempt: int) -> float:
        """Upper bound of the delay before retry number ``attempt`` (from 1)."""

        return min(self.maximum, self.initial * self.factor ** max(attempt - 1, 0))


@dataclass
class WatchConfig:
    name: str
    service: str
    port: Port
    namespace: Optional[str] = None
    capacity: int = 1024
    scheme: str = "http"
    connect_timeout: float = 5.0

    def to_discovery_config(self) -> DiscoveryConfig:
        config = DiscoveryConfig.new(self.service, self.port)
        if self.namespace:
            config = config.with_namespace(self.namespace)
        return config


@dataclass
class AgentConfig:
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    watches: Sequence[WatchConfig] = field(default_factory=list)


def parse_port(value: Union[int, str]) -> Port:
    """Interpret a port read from YAML or the command line.

    Digit-only strings are treated as numbers so ``--port 50051`` and
    ``port: "50051"`` behave like ``port: 50051``.
    """

    if isinstance(value, str) and value.isdigit():
        return port_from(int(value))
    return port_from(value)


def _parse_kubernetes(section: dict) -> KubernetesConfig:
    kubeconfig = section.get("kubeconfig")
    return KubernetesConfig(
        kubeconfig=Path(kubeconfig).expanduser() if kubeconfig else None,
        context=section.get("context"),
    )


def _parse_backoff(section: dict) -> BackoffConfig:
    max_retries = section.get("max_retries")
    backoff = BackoffConfig(
        initial=float(section.get("initial", 0.8)),
        maximum=float(section.get("maximum", 30.0)),
        factor=float(section.get("factor", 2.0)),
        max_retries=None if max_retries is None else int(max_retries),
    )
    if backoff.initial <= 0 or backoff.maximum < backoff.initial:
        raise ValueError("backoff requires 0 < initial <= maximum")
    if backoff.factor < 1:
        raise ValueError("backoff 'factor' must be >= 1")
    if backoff.max_retries is not None and backoff.max_retries < 0:
        raise ValueError("backoff 'max_retries' cannot be negative")
    return backoff


def _parse_watches(entries: Iterable[dict]) -> List[WatchConfig]:
    watches: List[WatchConfig] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValueError("each watch must be a mapping")
        service = entry.get("service")
        if not service:
            raise ValueError("watch missing 'service'")
        if "port" not in entry:
            raise ValueError(f"watch for service '{service}' missing 'port'")
        try:
            port = parse_port(entry["port"])
        except TypeError as exc:
            raise ValueError(f"invalid port for service '{service}': {exc}") from exc

        name = str(entry.get("name", service))
        if name in seen:
            raise ValueError(f"duplicate watch name '{name}'")
        seen.add(name)

        capacity = int(entry.get("capacity", 1024))
        if capacity < 1:
            raise ValueError(f"watch '{name}' capacity must be at least 1")

        watches.append(
            WatchConfig(
                name=name,
                service=str(service),
                port=port,
                namespace=entry.get("namespace"),
                capacity=capacity,
                scheme=str(entry.get("scheme", "http")),
                connect_timeout=float(entry.get("connect_timeout", 5.0)),
            )
        )
    return watches


def load_config(path: Path) -> AgentConfig:
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ValueError(f"Malformed agent configuration {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    kubernetes_section = data.get("kubernetes") or {}
    if not isinstance(kubernetes_section, dict):
        raise ValueError("'kubernetes' section must be a mapping")

    backoff_section = data.get("backoff") or {}
    if not isinstance(backoff_section, dict):
        raise ValueError("'backoff' section must be a mapping")

    watches_section = data.get("watches", [])
    if not isinstance(watches_section, list):
        raise ValueError("'watches' section must be a list")

    return AgentConfig(
        kubernetes=_parse_kubernetes(kubernetes_section),
        backoff=_parse_backoff(backoff_section),
        watches=_parse_watches(watches_section),
    )
