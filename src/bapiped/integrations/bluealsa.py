from __future__ import annotations

import logging
import os
from typing import Callable

from dbus_next import BusType, Message, MessageType
from dbus_next.aio import MessageBus

from bapiped.constants import (
    BLUEALSA_INTERFACE_MANAGER,
    BLUEALSA_INTERFACE_PCM,
    BLUEALSA_MANAGER_PATH,
    DBUS_INTERFACE,
    DBUS_INTERFACE_PROPERTIES,
    DBUS_PATH,
    DBUS_SERVICE,
)
from bapiped.domain.models import Direction, PcmChannel, PcmDescriptor
from bapiped.domain.notifications import RawSignal, descriptor_from_properties, is_bluealsa_signal
from bapiped.errors import (
    NotificationDecodeError,
    channel_open_error,
    registry_error,
    transport_error,
)


logger = logging.getLogger(__name__)

SignalCallback = Callable[[RawSignal], None]


class BlueAlsaClient:
    """Client side of the BlueALSA D-Bus API.

    Owns the bus connection, the signal subscriptions and the two method
    calls the daemon needs (``GetPCMs`` and ``Open``).
    """

    def __init__(self, *, service: str, bus: str = "system") -> None:
        self.service = service
        self._bus_type = BusType.SESSION if bus == "session" else BusType.SYSTEM
        self._bus: MessageBus | None = None

    def _require_bus(self) -> MessageBus:
        if self._bus is None:
            raise transport_error("D-Bus connection is not established", {"service": self.service})
        return self._bus

    async def connect(self) -> None:
        try:
            self._bus = await MessageBus(bus_type=self._bus_type, negotiate_unix_fd=True).connect()
        except Exception as exc:
            raise transport_error(
                "Couldn't initialize D-Bus context",
                {"service": self.service, "error": str(exc)},
            ) from exc
        logger.info("dbus.connected service=%s unique_name=%s", self.service, self._bus.unique_name)

    def match_rules(self) -> list[str]:
        return [
            f"type='signal',sender='{self.service}',interface='{BLUEALSA_INTERFACE_MANAGER}',member='PCMAdded'",
            f"type='signal',sender='{self.service}',interface='{BLUEALSA_INTERFACE_MANAGER}',member='PCMRemoved'",
            (
                f"type='signal',sender='{self.service}',interface='{DBUS_INTERFACE_PROPERTIES}',"
                f"member='PropertiesChanged',arg0='{BLUEALSA_INTERFACE_PCM}'"
            ),
        ]

    async def subscribe(self, on_signal: SignalCallback) -> None:
        bus = self._require_bus()
        for rule in self.match_rules():
            try:
                reply = await bus.call(
                    Message(
                        destination=DBUS_SERVICE,
                        path=DBUS_PATH,
                        interface=DBUS_INTERFACE,
                        member="AddMatch",
                        signature="s",
                        body=[rule],
                    )
                )
            except Exception as exc:
                raise transport_error("Couldn't add D-Bus match rule", {"rule": rule, "error": str(exc)}) from exc
            if reply is None or reply.message_type == MessageType.ERROR:
                raise transport_error(
                    "Couldn't add D-Bus match rule",
                    {"rule": rule, "error": getattr(reply, "error_name", None)},
                )

        def _handler(msg: Message) -> None:
            if msg.message_type != MessageType.SIGNAL:
                return None
            raw = RawSignal(
                path=msg.path,
                interface=msg.interface,
                member=msg.member,
                signature=msg.signature,
                body=list(msg.body),
            )
            if is_bluealsa_signal(raw):
                on_signal(raw)
            return None

        bus.add_message_handler(_handler)

    def watch_fds(self) -> list[int]:
        if self._bus is None or not self._bus.connected:
            return []
        fd = getattr(self._bus, "_fd", None)
        return [fd] if isinstance(fd, int) and fd >= 0 else []

    async def enumerate_pcms(self) -> list[PcmDescriptor]:
        bus = self._require_bus()
        try:
            reply = await bus.call(
                Message(
                    destination=self.service,
                    path=BLUEALSA_MANAGER_PATH,
                    interface=BLUEALSA_INTERFACE_MANAGER,
                    member="GetPCMs",
                )
            )
        except Exception as exc:
            raise registry_error("Couldn't get BlueALSA PCM list", {"error": str(exc)}) from exc
        if reply is None or reply.message_type == MessageType.ERROR:
            raise registry_error(
                "Couldn't get BlueALSA PCM list",
                {"error": getattr(reply, "error_name", None), "body": list(getattr(reply, "body", []) or [])},
            )
        if reply.signature != "a{oa{sv}}" or not reply.body or not isinstance(reply.body[0], dict):
            raise registry_error("unexpected GetPCMs reply", {"signature": reply.signature})

        descriptors: list[PcmDescriptor] = []
        for path, props in reply.body[0].items():
            try:
                descriptors.append(descriptor_from_properties(str(path), props))
            except NotificationDecodeError as exc:
                logger.warning("pcm.skip device=%s error=%s", path, exc)
        return descriptors

    async def open_pcm(self, device_id: str, direction: Direction) -> PcmChannel:
        bus = self._require_bus()
        try:
            reply = await bus.call(
                Message(
                    destination=self.service,
                    path=device_id,
                    interface=BLUEALSA_INTERFACE_PCM,
                    member="Open",
                    signature="s",
                    body=[direction.value],
                )
            )
        except Exception as exc:
            raise channel_open_error("Couldn't open PCM", {"device": device_id, "error": str(exc)}) from exc
        if reply is None:
            raise channel_open_error("Couldn't open PCM", {"device": device_id, "error": "no reply"})

        received = list(reply.unix_fds or [])
        if reply.message_type == MessageType.ERROR:
            _close_all(received)
            raise channel_open_error(
                "Couldn't open PCM",
                {"device": device_id, "error": reply.error_name, "body": list(reply.body or [])},
            )
        if reply.signature != "hh" or len(reply.body) != 2:
            _close_all(received)
            raise channel_open_error("unexpected Open reply", {"device": device_id, "signature": reply.signature})

        try:
            data_fd, control_fd = (received[int(index)] for index in reply.body)
        except (IndexError, TypeError, ValueError) as exc:
            _close_all(received)
            raise channel_open_error("Open reply is missing descriptors", {"device": device_id}) from exc
        _close_all(fd for fd in received if fd not in (data_fd, control_fd))
        return PcmChannel(data_fd=data_fd, control_fd=control_fd)

    def disconnect(self) -> None:
        if self._bus is not None:
            self._bus.disconnect()
            self._bus = None


def _close_all(fds) -> None:
    for fd in fds:
        try:
            os.close(fd)
        except OSError as exc:
            logger.debug("fd.close_failed fd=%s error=%s", fd, exc)
