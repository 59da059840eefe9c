"""Watch sources used by the endpoint-lb agent."""

from .kubernetes import EndpointSliceWatcher, WatchError, open_api_client  # noqa: F401

__all__ = ["EndpointSliceWatcher", "WatchError", "open_api_client"]
