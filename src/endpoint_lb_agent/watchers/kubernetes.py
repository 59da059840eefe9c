"""EndpointSlice watch source built on ``kubernetes_asyncio``.

The watcher lists the slices of one service, then follows changes with a
watch request starting at the listed resource version.  It produces the
event sequence the discovery loop expects:

* ``Init``, one ``InitApply`` per slice, ``InitDone`` for every (re)list;
* ``Apply`` / ``Delete`` for watch updates.

Recovering from connection problems is this module's job.  Expired resource
versions (``410 Gone``) trigger a re-list, transient errors are retried with
jittered exponential backoff and authorization failures end the stream with
:class:`WatchError`.
"""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import aclosing
from typing import Any, AsyncIterator, Awaitable, Callable, List, Mapping, Optional, Tuple

import aiohttp
import yaml
from kubernetes_asyncio import client, config, watch
from kubernetes_asyncio.client.api_client import ApiClient
from kubernetes_asyncio.client.exceptions import ApiException

from endpoint_lb.events import Init, InitApply, InitDone, WatchEvent
from endpoint_lb.resources import EndpointSlice

from ..config import BackoffConfig, KubernetesConfig
from .utils import (
    in_cluster_namespace,
    resource_version_of,
    service_label_selector,
    translate_watch_event,
)

LOG = logging.getLogger(__name__)

FATAL_STATUSES = frozenset({401, 403, 404})
GONE = 410


class WatchError(RuntimeError):
    """The watch cannot continue and the caller has to decide what to do."""


def kubeconfig_namespace(kube: KubernetesConfig) -> Optional[str]:
    config_file = str(kube.kubeconfig) if kube.kubeconfig else None
    try:
        contexts, active = config.list_kube_config_contexts(config_file=config_file)
    except (config.ConfigException, OSError, yaml.YAMLError):
        return None
    if kube.context:
        active = next((c for c in contexts if c.get("name") == kube.context), None)
    if not active:
        return None
    return (active.get("context") or {}).get("namespace")


async def open_api_client(kube: KubernetesConfig) -> Tuple[ApiClient, Optional[str]]:
    """Load client configuration and return ``(api_client, ambient_namespace)``.

    In-cluster configuration is tried first unless a kubeconfig file is
    configured explicitly.
    """

    if kube.kubeconfig is None:
        try:
            config.load_incluster_config()
        except config.ConfigException:
            LOG.debug("not running in-cluster, falling back to kubeconfig")
        else:
            LOG.info("Loaded in-cluster Kubernetes config")
            return ApiClient(), in_cluster_namespace()

    await config.load_kube_config(
        config_file=str(kube.kubeconfig) if kube.kubeconfig else None,
        context=kube.context,
    )
    LOG.info("Loaded kubeconfig (context=%s)", kube.context or "current")
    return ApiClient(), kubeconfig_namespace(kube)


def _as_dict(api: Any, item: Any) -> Mapping[str, Any]:
    if isinstance(item, Mapping):
        return item
    return api.api_client.sanitize_for_serialization(item)


class EndpointSliceWatcher:
    """List and watch the EndpointSlices of one service."""

    def __init__(
        self,
        api: "client.DiscoveryV1Api",
        namespace: str,
        service_name: str,
        backoff: Optional[BackoffConfig] = None,
        *,
        watch_timeout: int = 290,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        watch_factory: Callable[[], Any] = watch.Watch,
    ) -> None:
        self._api = api
        self._namespace = namespace
        self._service_name = service_name
        self._selector = service_label_selector(service_name)
        self._backoff = backoff or BackoffConfig()
        self._watch_timeout = watch_timeout
        self._sleep = sleep
        self._watch_factory = watch_factory

    @property
    def namespace(self) -> str:
        return self._namespace

    async def events(self) -> AsyncIterator[WatchEvent]:
        LOG.info(
            "Starting EndpointSlice watch for %s/%s",
            self._namespace,
            self._service_name,
        )
        attempt = 0
        resource_version: Optional[str] = None
        while True:
            try:
                if resource_version is None:
                    slices, resource_version = await self._list()
                    attempt = 0
                    yield Init()
                    for slice_ in slices:
                        yield InitApply(slice_)
                    yield InitDone()

                async with aclosing(self._watch(resource_version)) as stream:
                    async for kind, obj in stream:
                        attempt = 0
                        resource_version = resource_version_of(obj) or resource_version
                        event = translate_watch_event(kind, obj)
                        if event is not None:
                            yield event
                LOG.debug("watch for %s timed out, resuming", self._service_name)
            except ApiException as exc:
                if exc.status == GONE:
                    LOG.info(
                        "resource version for %s expired, re-listing", self._service_name
                    )
                    resource_version = None
                    continue
                if exc.status in FATAL_STATUSES:
                    raise WatchError(
                        f"EndpointSlice watch for {self._namespace}/{self._service_name} "
                        f"failed with HTTP {exc.status}: {exc.reason}"
                    ) from exc
                attempt = await self._retry(attempt, exc)
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                attempt = await self._retry(attempt, exc)

    async def _list(self) -> Tuple[List[EndpointSlice], Optional[str]]:
        result = await self._api.list_namespaced_endpoint_slice(
            self._namespace, label_selector=self._selector
        )
        slices = [
            EndpointSlice.from_dict(_as_dict(self._api, item)) for item in result.items or ()
        ]
        LOG.debug("listed %d slices for %s", len(slices), self._service_name)
        return slices, result.metadata.resource_version

    async def _watch(self, resource_version: Optional[str]) -> AsyncIterator[Tuple[str, Mapping[str, Any]]]:
        stream = self._watch_factory().stream(
            self._api.list_namespaced_endpoint_slice,
            self._namespace,
            label_selector=self._selector,
            resource_version=resource_version,
            allow_watch_bookmarks=True,
            timeout_seconds=self._watch_timeout,
        )
        async with stream:
            async for event in stream:
                kind = event["type"]
                obj = event.get("raw_object") or {}
                if kind == "ERROR":
                    raise ApiException(status=obj.get("code"), reason=obj.get("message"))
                yield kind, obj

    async def _retry(self, attempt: int, exc: BaseException) -> int:
        attempt += 1
        limit = self._backoff.max_retries
        if limit is not None and attempt > limit:
            raise WatchError(
                f"EndpointSlice watch for {self._namespace}/{self._service_name} "
                f"gave up after {limit} retries: {exc}"
            ) from exc
        delay = self._backoff.delay(attempt) * random.uniform(0.5, 1.0)
        LOG.warning(
            "EndpointSlice watch for %s failed (%s); retrying in %.1fs",
            self._service_name,
            exc,
            delay,
        )
        await self._sleep(delay)
        return attempt
