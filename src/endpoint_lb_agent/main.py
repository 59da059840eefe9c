"""Entry point for the standalone endpoint-lb agent."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from kubernetes_asyncio import client
from kubernetes_asyncio import config as kube_config

from .config import AgentConfig, WatchConfig, load_config, parse_port
from .pool import build_target
from .registry import ManagedWatch, WatchRegistry
from .watchers import EndpointSliceWatcher, open_api_client
from .watchers.utils import resolve_namespace

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Follow Kubernetes EndpointSlices for client-side load balancing"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to the agent configuration file",
    )
    parser.add_argument("--service", help="Service to watch when no config file is given")
    parser.add_argument("--port", help="Port number or name of the watched service")
    parser.add_argument("--namespace", help="Namespace of the watched service")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def _config_from_args(args: argparse.Namespace) -> AgentConfig:
    if args.config is not None:
        return load_config(args.config)
    if not args.service or not args.port:
        raise ValueError("either --config or both --service and --port are required")
    watch = WatchConfig(
        name=args.service,
        service=args.service,
        port=parse_port(args.port),
        namespace=args.namespace,
    )
    return AgentConfig(watches=[watch])


async def run(config: AgentConfig) -> int:
    api_client, ambient_namespace = await open_api_client(config.kubernetes)
    registry = WatchRegistry()

    async with api_client:
        api = client.DiscoveryV1Api(api_client)
        for watch_cfg in config.watches:
            discovery = watch_cfg.to_discovery_config()
            namespace = resolve_namespace(discovery.namespace, ambient_namespace)
            watcher = EndpointSliceWatcher(
                api, namespace, discovery.service_name, config.backoff
            )
            registry.register(
                watch_cfg.name,
                ManagedWatch(
                    discovery,
                    watcher.events,
                    build_target(watch_cfg.scheme, watch_cfg.connect_timeout),
                    capacity=watch_cfg.capacity,
                ),
            )

        if not config.watches:
            LOG.warning("no watches configured; agent will exit")

        loop = asyncio.get_running_loop()
        stopping = asyncio.Event()

        def _shutdown(signum: int) -> None:  # pragma: no cover - signal handler
            LOG.info("received signal %s, shutting down", signum)
            stopping.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, _shutdown, signum)

        registry.start()
        waiter = asyncio.create_task(registry.wait())
        stopper = asyncio.create_task(stopping.wait())
        await asyncio.wait({waiter, stopper}, return_when=asyncio.FIRST_COMPLETED)
        if not waiter.done():
            await registry.stop()
        stopper.cancel()
        outcome = await waiter

    failed = [name for name, exc in outcome.items() if exc is not None]
    LOG.info("endpoint-lb agent stopped")
    return 1 if failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = _config_from_args(args)
    except (OSError, ValueError, TypeError) as exc:
        LOG.error("invalid configuration: %s", exc)
        return 2

    try:
        return asyncio.run(run(config))
    except kube_config.ConfigException as exc:
        LOG.error("unable to load Kubernetes configuration: %s", exc)
        return 1
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
