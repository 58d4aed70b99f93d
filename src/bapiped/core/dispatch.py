from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
import logging

from bapiped.core.registry import WorkerRegistry
from bapiped.core.state_store import LoopState, LoopStateStore
from bapiped.domain.notifications import (
    DeviceAdded,
    DeviceRemoved,
    Notification,
    PropertyChanged,
    RawSignal,
    decode_signal,
)
from bapiped.errors import NotificationDecodeError, watch_capacity_error
from bapiped.integrations.bluealsa import BlueAlsaClient


logger = logging.getLogger(__name__)


@dataclass
class DispatchContext:
    """Everything the dispatch loop and its handlers share.

    Signals are buffered in ``inbox`` by the transport callback and only
    consumed by the dispatch task.
    """

    registry: WorkerRegistry
    state: LoopStateStore = field(default_factory=LoopStateStore)
    inbox: deque[RawSignal] = field(default_factory=deque)
    wakeup: asyncio.Event = field(default_factory=asyncio.Event)
    shutdown_requested: bool = False

    def push(self, raw: RawSignal) -> None:
        self.inbox.append(raw)
        self.wakeup.set()

    def request_shutdown(self) -> None:
        if self.shutdown_requested:
            return
        self.shutdown_requested = True
        if self.state.state is LoopState.RUNNING:
            self.state.transition(LoopState.SHUTTING_DOWN)
        self.wakeup.set()


class EventDispatchLoop:
    def __init__(self, *, context: DispatchContext, transport: BlueAlsaClient, max_watch_fds: int) -> None:
        self._context = context
        self._transport = transport
        self._max_watch_fds = max_watch_fds

    async def run(self) -> None:
        logger.debug("Starting main loop")
        try:
            while not self._context.shutdown_requested:
                fds = self._transport.watch_fds()
                if len(fds) > self._max_watch_fds:
                    raise watch_capacity_error(len(fds), self._max_watch_fds)
                if not await self._wait():
                    # Woken without work (signal delivery or shutdown); re-check and wait again.
                    continue
                await self.drain()
        finally:
            self._context.registry.teardown_all()
            self._context.state.transition(LoopState.TERMINATED)
            logger.debug("Main loop terminated")

    async def _wait(self) -> bool:
        if not self._context.inbox:
            await self._context.wakeup.wait()
        self._context.wakeup.clear()
        return bool(self._context.inbox)

    async def drain(self) -> int:
        handled = 0
        while self._context.inbox:
            await self.dispatch(self._context.inbox.popleft())
            handled += 1
        return handled

    async def dispatch(self, raw: RawSignal) -> None:
        state = self._context.state
        state.count_notification()
        try:
            notification = decode_signal(raw)
        except NotificationDecodeError as exc:
            logger.error("notification.discard member=%s path=%s error=%s", raw.member, raw.path, exc)
            state.record_discard(exc.code, exc.message, exc.details)
            return
        try:
            await self.handle(notification)
        except Exception as exc:  # pragma: no cover - guardrail path
            logger.exception("notification.crash member=%s path=%s error=%s", raw.member, raw.path, exc)
            state.record_discard("E_INTERNAL", str(exc), {"member": raw.member, "path": raw.path})

    async def handle(self, notification: Notification) -> None:
        registry = self._context.registry
        if isinstance(notification, DeviceAdded):
            await registry.upsert(notification.descriptor)
        elif isinstance(notification, DeviceRemoved):
            await registry.remove(notification.device_id)
        elif isinstance(notification, PropertyChanged):
            await registry.update(notification.device_id, notification.changes)
        else:
            raise TypeError(f"unsupported notification: {notification!r}")
