from __future__ import annotations

import logging
from typing import Any

from bapiped.domain.models import Action, Direction, PcmChannel, PcmDescriptor, Worker
from bapiped.errors import ChannelOpenError, PipelineError, pipeline_error
from bapiped.integrations.bluealsa import BlueAlsaClient
from bapiped.integrations.gstreamer import GstEngine, PipelineState
from bapiped.managers.topology import FD_ELEMENT, PW_ELEMENT, Topology, device_caps, topology_for


logger = logging.getLogger(__name__)


class PipelineLifecycleManager:
    """Starts and stops the per-direction pipelines of a worker.

    A direction is either fully up (pipeline PLAYING and its PCM channel
    held by the worker) or fully down. Every failure while bringing a
    direction up releases whatever was acquired on the way.
    """

    def __init__(self, *, engine: GstEngine, registry_service: BlueAlsaClient) -> None:
        self._engine = engine
        self._registry_service = registry_service

    async def apply(self, worker: Worker, action: Action) -> None:
        if action is Action.STOP:
            self.teardown(worker)
            return
        for direction in action.directions:
            await self.start(worker, direction)

    async def start(self, worker: Worker, direction: Direction) -> bool:
        if worker.running(direction):
            return False

        topology = topology_for(direction, worker.descriptor)
        if topology is None:
            logger.debug("worker.no_topology device=%s direction=%s", worker.device_id, direction.value)
            return False

        try:
            channel = await self._registry_service.open_pcm(worker.device_id, direction)
        except ChannelOpenError as exc:
            logger.error("worker.open_failed device=%s direction=%s error=%s", worker.device_id, direction.value, exc)
            return False

        if worker.running(direction):
            # Started by another caller while the Open call was pending.
            self._close_channel(worker, channel)
            return False

        logger.debug("worker.start device=%s direction=%s", worker.device_id, direction.value)
        pipeline: Any = None
        committed = False
        try:
            pipeline = self._engine.build_pipeline(topology.description)
            self._configure(pipeline, topology, worker.descriptor, channel)
            self._engine.set_state(pipeline, PipelineState.PLAYING)
            worker.pipelines[direction] = pipeline
            worker.channels[direction] = channel
            committed = True
        except PipelineError as exc:
            logger.error(
                "worker.pipeline_failed device=%s direction=%s error=%s",
                worker.device_id,
                direction.value,
                exc,
            )
        finally:
            if not committed:
                if pipeline is not None:
                    self._release(worker, pipeline)
                self._close_channel(worker, channel)

        if committed:
            logger.info("worker.started device=%s direction=%s", worker.device_id, direction.value)
        return committed

    def _configure(self, pipeline: Any, topology: Topology, desc: PcmDescriptor, channel: PcmChannel) -> None:
        if desc.channels <= 0 or desc.sampling <= 0:
            raise pipeline_error(
                "invalid stream parameters",
                {"channels": desc.channels, "sampling": desc.sampling},
            )
        caps_str = device_caps(desc.channels, desc.sampling)
        caps = self._engine.caps_from_string(caps_str)
        for name in topology.caps_elements:
            self._engine.set_element_property(pipeline, name, "caps", caps)
        for name in topology.optional_caps_elements:
            if self._engine.has_element(pipeline, name):
                self._engine.set_element_property(pipeline, name, "caps", caps)
        logger.debug("worker.caps device=%s caps=%s", desc.device_id, caps_str)

        self._engine.set_element_property(pipeline, FD_ELEMENT, "fd", channel.data_fd)
        if topology.stream_properties:
            props = self._engine.structure_from_string(topology.stream_properties)
            self._engine.set_element_property(pipeline, PW_ELEMENT, "stream-properties", props)

    def stop(self, worker: Worker, direction: Direction) -> None:
        pipeline = worker.pipelines.pop(direction, None)
        if pipeline is not None:
            self._release(worker, pipeline)
            logger.info("worker.stopped device=%s direction=%s", worker.device_id, direction.value)
        channel = worker.channels.pop(direction, None)
        if channel is not None:
            self._close_channel(worker, channel)

    def teardown(self, worker: Worker) -> None:
        if worker.fully_stopped():
            return
        logger.debug("worker.teardown device=%s", worker.device_id)
        for direction in Direction:
            self.stop(worker, direction)

    def _release(self, worker: Worker, pipeline: Any) -> None:
        try:
            self._engine.set_state(pipeline, PipelineState.NULL)
        except PipelineError as exc:
            logger.warning("worker.deactivate_failed device=%s error=%s", worker.device_id, exc)
        self._engine.release(pipeline)

    def _close_channel(self, worker: Worker, channel: PcmChannel) -> None:
        try:
            channel.close()
        except OSError as exc:
            logger.warning("worker.close_failed device=%s error=%s", worker.device_id, exc)
