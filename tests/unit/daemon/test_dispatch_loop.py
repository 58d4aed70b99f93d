from __future__ import annotations

import asyncio
import os
import re
import unittest
from typing import Any, cast

from dbus_next import Variant

from bapiped.constants import BLUEALSA_INTERFACE_MANAGER, BLUEALSA_INTERFACE_PCM, DBUS_INTERFACE_PROPERTIES
from bapiped.core.dispatch import DispatchContext, EventDispatchLoop
from bapiped.core.registry import WorkerRegistry
from bapiped.core.state_store import LoopState
from bapiped.domain.models import Direction, PcmChannel
from bapiped.domain.notifications import RawSignal
from bapiped.errors import WatchCapacityError, channel_open_error, pipeline_error
from bapiped.integrations.gstreamer import PipelineState
from bapiped.managers.pipeline_manager import PipelineLifecycleManager


class _PipelineStub:
    def __init__(self, description: str) -> None:
        self.description = description
        self.properties: dict[tuple[str, str], Any] = {}
        self.state = "null"
        self.released = False


class _EngineStub:
    def __init__(self, *, fail_build: bool = False, fail_play: bool = False, fail_property: bool = False) -> None:
        self.fail_build = fail_build
        self.fail_play = fail_play
        self.fail_property = fail_property
        self.built: list[_PipelineStub] = []

    def build_pipeline(self, description: str) -> _PipelineStub:
        if self.fail_build:
            raise pipeline_error("no such element")
        pipeline = _PipelineStub(description)
        self.built.append(pipeline)
        return pipeline

    def has_element(self, pipeline: _PipelineStub, name: str) -> bool:
        return re.search(rf"name={name}\b", pipeline.description) is not None

    def set_element_property(self, pipeline: _PipelineStub, element: str, prop: str, value: Any) -> None:
        if self.fail_property:
            raise pipeline_error("bad property")
        pipeline.properties[(element, prop)] = value

    def caps_from_string(self, caps: str) -> str:
        return caps

    def structure_from_string(self, structure: str) -> str:
        return structure

    def set_state(self, pipeline: _PipelineStub, state: PipelineState) -> None:
        if state is PipelineState.PLAYING and self.fail_play:
            raise pipeline_error("state change failed")
        pipeline.state = state.value

    def release(self, pipeline: _PipelineStub) -> None:
        pipeline.released = True


class _ServiceStub:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.opened: list[tuple[str, Direction]] = []
        self.channels: list[PcmChannel] = []

    async def open_pcm(self, device_id: str, direction: Direction) -> PcmChannel:
        self.opened.append((device_id, direction))
        if self.fail:
            raise channel_open_error("Couldn't open PCM", {"device": device_id})
        read_fd, write_fd = os.pipe()
        channel = PcmChannel(data_fd=read_fd, control_fd=write_fd)
        self.channels.append(channel)
        return channel


class _TransportStub:
    def __init__(self, fds: int = 1) -> None:
        self.fds = fds

    def watch_fds(self) -> list[int]:
        return list(range(3, 3 + self.fds))


PCM = "/org/bluealsa/hci0/dev_00_11_22_33_44_55/sco"


def _added(**props: Variant) -> RawSignal:
    return RawSignal(
        path="/org/bluealsa",
        interface=BLUEALSA_INTERFACE_MANAGER,
        member="PCMAdded",
        signature="oa{sv}",
        body=[PCM, dict(props)],
    )


def _changed(**props: Variant) -> RawSignal:
    return RawSignal(
        path=PCM,
        interface=DBUS_INTERFACE_PROPERTIES,
        member="PropertiesChanged",
        signature="sa{sv}as",
        body=[BLUEALSA_INTERFACE_PCM, dict(props), []],
    )


def _removed(path: str = PCM) -> RawSignal:
    return RawSignal(
        path="/org/bluealsa",
        interface=BLUEALSA_INTERFACE_MANAGER,
        member="PCMRemoved",
        signature="o",
        body=[path],
    )


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class EventDispatchLoopTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.engine = _EngineStub()
        self.service = _ServiceStub()
        lifecycle = PipelineLifecycleManager(engine=cast(Any, self.engine), registry_service=cast(Any, self.service))
        self.registry = WorkerRegistry(lifecycle=lifecycle)
        self.context = DispatchContext(registry=self.registry)
        self.transport = _TransportStub()
        self.loop = EventDispatchLoop(context=self.context, transport=cast(Any, self.transport), max_watch_fds=10)

    def tearDown(self) -> None:
        self.registry.teardown_all()

    async def test_add_then_codec_change_in_one_batch(self) -> None:
        self.context.push(
            _added(
                Transport=Variant("s", "HFP-HF"),
                Modes=Variant("as", ["source"]),
                Codec=Variant("q", 0),
                Channels=Variant("y", 1),
                Sampling=Variant("u", 16000),
            )
        )
        self.context.push(_changed(Codec=Variant("q", 2)))

        handled = await self.loop.drain()

        self.assertEqual(handled, 2)
        self.assertEqual(self.service.opened, [(PCM, Direction.SOURCE)])
        self.assertEqual(len(self.engine.built), 1)
        self.assertEqual(self.context.state.snapshot()["notifications"], 2)

    async def test_wrongly_typed_change_is_discarded(self) -> None:
        self.context.push(
            _added(
                Transport=Variant("s", "A2DP-sink"),
                Modes=Variant("as", ["sink"]),
                Channels=Variant("y", 2),
                Sampling=Variant("u", 44100),
            )
        )
        await self.loop.drain()
        worker = self.registry.get(PCM)
        assert worker is not None
        before = worker.descriptor

        self.context.push(_changed(Channels=Variant("s", "two")))
        with self.assertLogs("bapiped.core.dispatch", level="ERROR"):
            await self.loop.drain()

        self.assertEqual(worker.descriptor, before)
        snapshot = self.context.state.snapshot()
        self.assertEqual(snapshot["discarded"], 1)
        self.assertEqual(snapshot["last_error"]["code"], "E_DECODE")

    async def test_removed_for_unknown_device_is_noop(self) -> None:
        self.context.push(_removed("/org/bluealsa/hci0/dev_AA/a2dp"))
        await self.loop.drain()
        self.assertEqual(len(self.registry), 0)
        self.assertEqual(self.context.state.snapshot()["discarded"], 0)

    async def test_run_processes_until_shutdown_then_tears_down(self) -> None:
        task = asyncio.create_task(self.loop.run())
        self.context.push(
            _added(
                Transport=Variant("s", "A2DP-sink"),
                Modes=Variant("as", ["sink"]),
                Channels=Variant("y", 2),
                Sampling=Variant("u", 48000),
            )
        )
        await _settle()
        self.assertEqual(len(self.registry), 1)
        self.assertEqual(self.context.state.state, LoopState.RUNNING)

        # A wake-up with nothing queued just waits again.
        self.context.wakeup.set()
        await _settle()
        self.assertFalse(task.done())

        self.context.request_shutdown()
        self.assertEqual(self.context.state.state, LoopState.SHUTTING_DOWN)
        await asyncio.wait_for(task, timeout=1.0)

        self.assertEqual(self.context.state.state, LoopState.TERMINATED)
        self.assertEqual(len(self.registry), 0)
        self.assertTrue(self.engine.built[0].released)
        self.assertTrue(self.service.channels[0].closed)

    async def test_shutdown_requested_twice(self) -> None:
        task = asyncio.create_task(self.loop.run())
        await _settle()
        self.context.request_shutdown()
        self.context.request_shutdown()
        await asyncio.wait_for(task, timeout=1.0)
        self.assertEqual(self.context.state.state, LoopState.TERMINATED)

    async def test_watch_capacity_exceeded_is_fatal(self) -> None:
        self.transport.fds = 11
        with self.assertRaises(WatchCapacityError) as ctx:
            await self.loop.run()
        self.assertTrue(ctx.exception.fatal)
        self.assertEqual(self.context.state.state, LoopState.TERMINATED)


if __name__ == "__main__":
    unittest.main()
