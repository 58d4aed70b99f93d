from __future__ import annotations

import logging
from typing import Any, Iterator

from bapiped.core.supervisor import evaluate
from bapiped.domain.models import PcmDescriptor, PcmPropertyChanges, Worker
from bapiped.managers.pipeline_manager import PipelineLifecycleManager


logger = logging.getLogger(__name__)


class WorkerRegistry:
    """Owns every worker, keyed by the PCM object path.

    Each mutation is followed by a supervisor evaluation whose action is
    handed to the lifecycle manager; the registry holds no capability
    logic of its own.
    """

    def __init__(self, *, lifecycle: PipelineLifecycleManager) -> None:
        self._lifecycle = lifecycle
        self._workers: dict[str, Worker] = {}

    def __len__(self) -> int:
        return len(self._workers)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._workers

    def __iter__(self) -> Iterator[Worker]:
        return iter(list(self._workers.values()))

    def get(self, device_id: str) -> Worker | None:
        return self._workers.get(device_id)

    def snapshot(self) -> list[dict[str, Any]]:
        return [worker.as_dict() for worker in self._workers.values()]

    async def upsert(self, descriptor: PcmDescriptor) -> Worker:
        worker = self._workers.get(descriptor.device_id)
        if worker is None:
            worker = Worker(descriptor=descriptor)
            self._workers[descriptor.device_id] = worker
            logger.info("worker.new device=%s flags=0x%x", descriptor.device_id, int(descriptor.flags))
        else:
            if _stream_changed(worker.descriptor, descriptor):
                # The PCM was re-created; channels opened for the old one are stale.
                self._lifecycle.teardown(worker)
            worker.descriptor = descriptor
            logger.info("worker.merge device=%s flags=0x%x", descriptor.device_id, int(descriptor.flags))
        await self._supervise(worker)
        return worker

    async def update(self, device_id: str, changes: PcmPropertyChanges) -> Worker | None:
        worker = self._workers.get(device_id)
        if worker is None:
            logger.debug("worker.update_unknown device=%s", device_id)
            return None
        worker.descriptor = changes.apply_to(worker.descriptor)
        await self._supervise(worker)
        return worker

    async def remove(self, device_id: str) -> bool:
        worker = self._workers.get(device_id)
        if worker is None:
            logger.debug("worker.remove_unknown device=%s", device_id)
            return False
        self._lifecycle.teardown(worker)
        del self._workers[device_id]
        logger.info("worker.removed device=%s", device_id)
        return True

    def teardown_all(self) -> None:
        for device_id in list(self._workers):
            self._lifecycle.teardown(self._workers.pop(device_id))

    async def _supervise(self, worker: Worker) -> None:
        action = evaluate(worker)
        logger.debug("worker.evaluate device=%s action=%s", worker.device_id, action.value)
        await self._lifecycle.apply(worker, action)


def _stream_changed(old: PcmDescriptor, new: PcmDescriptor) -> bool:
    return (old.profile, old.channels, old.sampling) != (new.profile, new.channels, new.sampling)
