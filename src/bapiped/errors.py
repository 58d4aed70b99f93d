from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class BapipeError(Exception):
    code: str
    message: str
    details: dict[str, Any] | None = None
    fatal: bool = False

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class NotificationDecodeError(BapipeError):
    pass


class ChannelOpenError(BapipeError):
    pass


class PipelineError(BapipeError):
    pass


class TransportError(BapipeError):
    pass


class WatchCapacityError(BapipeError):
    pass


def decode_error(message: str, details: dict[str, Any] | None = None) -> NotificationDecodeError:
    return NotificationDecodeError(code="E_DECODE", message=message, details=details)


def channel_open_error(message: str, details: dict[str, Any] | None = None) -> ChannelOpenError:
    return ChannelOpenError(code="E_CHANNEL_OPEN", message=message, details=details)


def pipeline_error(message: str, details: dict[str, Any] | None = None) -> PipelineError:
    return PipelineError(code="E_PIPELINE", message=message, details=details)


def transport_error(message: str, details: dict[str, Any] | None = None) -> TransportError:
    return TransportError(code="E_TRANSPORT", message=message, details=details, fatal=True)


def registry_error(message: str, details: dict[str, Any] | None = None) -> BapipeError:
    return BapipeError(code="E_REGISTRY", message=message, details=details)


def watch_capacity_error(count: int, limit: int) -> WatchCapacityError:
    return WatchCapacityError(
        code="E_WATCH_CAPACITY",
        message="transport requested more watch descriptors than configured",
        details={"count": count, "limit": limit},
        fatal=True,
    )


def not_found_error(message: str, details: dict[str, Any] | None = None) -> BapipeError:
    return BapipeError(code="E_NOT_FOUND", message=message, details=details)


def unavailable_error(message: str, details: dict[str, Any] | None = None) -> BapipeError:
    return BapipeError(code="E_UNAVAILABLE", message=message, details=details)
