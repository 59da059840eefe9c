import asyncio

import pytest

from endpoint_lb.config import Address, DiscoveryConfig
from endpoint_lb.events import Apply, Delete, InitApply
from endpoint_lb.resources import Endpoint, EndpointSlice
from endpoint_lb_agent.pool import build_target
from endpoint_lb_agent.registry import ManagedWatch, WatchRegistry


def make_slice(*addresses: str) -> EndpointSlice:
    return EndpointSlice(endpoints=[Endpoint(addresses=addresses)])


def make_watch(service: str, *events, error=None) -> ManagedWatch:
    async def source():
        for event in events:
            yield event
        if error is not None:
            raise error

    return ManagedWatch(
        DiscoveryConfig.new(service, 50051),
        source,
        build_target(),
        capacity=2,
    )


def test_registry_runs_watches_independently():
    registry = WatchRegistry()
    greeter = make_watch(
        "greeter",
        InitApply(make_slice("10.0.0.1", "10.0.0.2")),
        Delete(make_slice("10.0.0.1")),
    )
    billing = make_watch("billing", Apply(make_slice("10.1.0.1")))
    registry.register("greeter", greeter)
    registry.register("billing", billing)

    async def scenario():
        registry.start()
        return await registry.wait()

    outcome = asyncio.run(scenario())

    assert outcome == {"greeter": None, "billing": None}
    assert greeter.pool.targets()[0].uri == "http://10.0.0.2:50051"
    assert len(greeter.pool) == 1
    assert Address.parse("10.1.0.1:50051") in billing.pool
    assert Address.parse("10.1.0.1:50051") not in greeter.pool


def test_registry_reports_failed_watch():
    registry = WatchRegistry()
    failing = make_watch(
        "greeter", Apply(make_slice("10.0.0.1")), error=ConnectionError("boom")
    )
    healthy = make_watch("billing", Apply(make_slice("10.1.0.1")))
    registry.register("greeter", failing)
    registry.register("billing", healthy)

    async def scenario():
        registry.start()
        return await registry.wait()

    outcome = asyncio.run(scenario())

    assert isinstance(outcome["greeter"], ConnectionError)
    assert outcome["billing"] is None
    assert len(failing.pool) == 1
    assert len(healthy.pool) == 1


def test_registry_stop_cancels_running_watches():
    async def endless():
        yield Apply(make_slice("10.0.0.1"))
        await asyncio.Event().wait()
        yield Apply(make_slice("10.0.0.2"))  # pragma: no cover

    watch = ManagedWatch(DiscoveryConfig.new("greeter", 50051), endless, build_target())
    registry = WatchRegistry()
    registry.register("greeter", watch)

    async def scenario():
        registry.start()
        for _ in range(10):
            await asyncio.sleep(0)
        await registry.stop()
        return await registry.wait()

    outcome = asyncio.run(scenario())

    assert outcome == {"greeter": None}
    assert len(watch.pool) == 1


def test_registry_rejects_duplicate_registration():
    registry = WatchRegistry()
    watch = make_watch("greeter")

    registry.register("greeter", watch)

    with pytest.raises(ValueError):
        registry.register("greeter", watch)


def test_registry_unregister():
    registry = WatchRegistry()
    registry.register("greeter", make_watch("greeter"))

    registry.unregister("greeter")
    registry.unregister("missing")

    assert "greeter" not in registry
    assert registry.get("greeter") is None
