from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from endpoint_lb.events import Apply, Delete, WatchEvent
from endpoint_lb.resources import EndpointSlice

SERVICE_NAME_LABEL = "kubernetes.io/service-name"
SERVICE_ACCOUNT_NAMESPACE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")
DEFAULT_NAMESPACE = "default"


def service_label_selector(service_name: str) -> str:
    return f"{SERVICE_NAME_LABEL}={service_name}"


def resource_version_of(obj: Mapping[str, Any]) -> Optional[str]:
    metadata = obj.get("metadata") or {}
    return metadata.get("resourceVersion")


def translate_watch_event(kind: str, obj: Mapping[str, Any]) -> Optional[WatchEvent]:
    """Map a raw watch event onto an engine event.

    Returns ``None`` for event types that carry no endpoint state
    (bookmarks).
    """

    if kind in ("ADDED", "MODIFIED"):
        return Apply(EndpointSlice.from_dict(obj))
    if kind == "DELETED":
        return Delete(EndpointSlice.from_dict(obj))
    if kind == "BOOKMARK":
        return None
    raise ValueError(f"unexpected watch event type '{kind}'")


def in_cluster_namespace(path: Path = SERVICE_ACCOUNT_NAMESPACE) -> Optional[str]:
    try:
        namespace = path.read_text().strip()
    except OSError:
        return None
    return namespace or None


def resolve_namespace(explicit: Optional[str], ambient: Optional[str]) -> str:
    return explicit or ambient or DEFAULT_NAMESPACE
