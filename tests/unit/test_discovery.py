import asyncio

import pytest

from endpoint_lb.channel import ChangeChannel
from endpoint_lb.config import Address, DiscoveryConfig
from endpoint_lb.discovery import discover, run_discovery
from endpoint_lb.emitter import ChangeEmitter, Insert, Remove
from endpoint_lb.events import Apply, Delete, Init, InitApply, InitDone
from endpoint_lb.reconcile import EndpointAction
from endpoint_lb.resources import Endpoint, EndpointSlice

CONFIG = DiscoveryConfig.new("greeter", 50051)


def make_slice(*addresses: str) -> EndpointSlice:
    return EndpointSlice(endpoints=[Endpoint(addresses=addresses)])


def addr(text: str) -> Address:
    return Address.parse(text)


async def source(*events, error=None):
    for event in events:
        yield event
    if error is not None:
        raise error


class RecordingBuild:
    def __init__(self):
        self.calls: list[Address] = []

    def __call__(self, address: Address) -> str:
        self.calls.append(address)
        return f"http://{address}"


async def drain(channel: ChangeChannel) -> list:
    return [await channel.recv() for _ in range(len(channel))]


def test_emitter_builds_descriptor_once_per_insert():
    async def scenario():
        channel = ChangeChannel(8)
        build = RecordingBuild()
        emitter = ChangeEmitter(channel, build)
        ok = await emitter.emit(
            [
                EndpointAction.insert(addr("10.0.0.1:50051")),
                EndpointAction.remove(addr("10.0.0.2:50051")),
            ]
        )
        return ok, build.calls, await drain(channel)

    ok, calls, changes = asyncio.run(scenario())

    assert ok is True
    assert calls == [addr("10.0.0.1:50051")]
    assert changes == [
        Insert(addr("10.0.0.1:50051"), "http://10.0.0.1:50051"),
        Remove(addr("10.0.0.2:50051")),
    ]


def test_emitter_reports_closed_channel():
    async def scenario():
        channel = ChangeChannel(8)
        await channel.close()
        emitter = ChangeEmitter(channel, RecordingBuild())
        return await emitter.emit([EndpointAction.insert(addr("10.0.0.1:50051"))])

    assert asyncio.run(scenario()) is False


def test_run_discovery_emits_minimal_diff():
    events = source(
        Init(),
        InitApply(make_slice("10.0.0.1", "10.0.0.2")),
        InitDone(),
        Apply(make_slice("10.0.0.1", "10.0.0.2")),
        Delete(make_slice("10.0.0.2")),
    )

    async def scenario():
        channel = ChangeChannel(16)
        await run_discovery(events, channel, CONFIG, RecordingBuild())
        return await drain(channel)

    changes = asyncio.run(scenario())

    inserts = {c.key for c in changes if isinstance(c, Insert)}
    removes = [c for c in changes if isinstance(c, Remove)]
    assert inserts == {addr("10.0.0.1:50051"), addr("10.0.0.2:50051")}
    assert removes == [Remove(addr("10.0.0.2:50051"))]
    assert len(changes) == 3
    assert isinstance(changes[-1], Remove)


def test_run_discovery_stops_when_channel_closed():
    consumed = []

    async def tracked():
        for event in (
            Apply(make_slice("10.0.0.1")),
            Apply(make_slice("10.0.0.2")),
            Apply(make_slice("10.0.0.3")),
        ):
            consumed.append(event)
            yield event

    async def scenario():
        channel = ChangeChannel(1)
        task = asyncio.create_task(run_discovery(tracked(), channel, CONFIG, RecordingBuild()))
        first = await channel.recv()
        await channel.close()
        await asyncio.wait_for(task, timeout=1)
        return first

    first = asyncio.run(scenario())

    assert first.key == addr("10.0.0.1:50051")
    assert len(consumed) < 3


def test_run_discovery_closes_source_when_channel_closed():
    closed = []

    async def tracked():
        try:
            yield Apply(make_slice("10.0.0.1"))
            yield Apply(make_slice("10.0.0.2"))
        finally:
            closed.append(True)

    async def scenario():
        channel = ChangeChannel(8)
        await channel.close()
        await run_discovery(tracked(), channel, CONFIG, RecordingBuild())
        return list(closed)

    assert asyncio.run(scenario()) == [True]


def test_slow_consumer_applies_backpressure():
    pulled = []

    async def tracked():
        for index in range(1, 5):
            pulled.append(index)
            yield Apply(make_slice(f"10.0.0.{index}"))

    async def scenario():
        channel = ChangeChannel(1)
        task = asyncio.create_task(run_discovery(tracked(), channel, CONFIG, RecordingBuild()))
        for _ in range(5):
            await asyncio.sleep(0)
        stalled_at = len(pulled)
        received = [await channel.recv() for _ in range(4)]
        await asyncio.wait_for(task, timeout=1)
        return stalled_at, received

    stalled_at, received = asyncio.run(scenario())

    assert stalled_at < 4
    assert [c.key for c in received] == [addr(f"10.0.0.{i}:50051") for i in range(1, 5)]


def test_discover_propagates_source_failure():
    async def scenario():
        channel = ChangeChannel(8)
        task = discover(
            CONFIG,
            channel,
            RecordingBuild(),
            source(Apply(make_slice("10.0.0.1")), error=ConnectionError("api unreachable")),
        )
        with pytest.raises(ConnectionError):
            await task
        return await drain(channel)

    changes = asyncio.run(scenario())

    assert [c.key for c in changes] == [addr("10.0.0.1:50051")]


def test_cancelled_discovery_sends_no_removals():
    async def endless():
        yield Apply(make_slice("10.0.0.1"))
        await asyncio.Event().wait()
        yield InitDone()  # pragma: no cover

    async def scenario():
        channel = ChangeChannel(8)
        task = discover(CONFIG, channel, RecordingBuild(), endless())
        await channel.recv()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return len(channel)

    assert asyncio.run(scenario()) == 0
