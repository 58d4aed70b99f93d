"""Typed domain models shared by the registry, supervisor and transport."""

from bapiped.domain.models import (
    Action,
    Direction,
    PcmChannel,
    PcmDescriptor,
    PcmFlags,
    PcmPropertyChanges,
    Worker,
)
from bapiped.domain.notifications import (
    DeviceAdded,
    DeviceRemoved,
    Notification,
    PropertyChanged,
    RawSignal,
    decode_signal,
)

__all__ = [
    "Action",
    "DeviceAdded",
    "DeviceRemoved",
    "Direction",
    "Notification",
    "PcmChannel",
    "PcmDescriptor",
    "PcmFlags",
    "PcmPropertyChanges",
    "PropertyChanged",
    "RawSignal",
    "Worker",
    "decode_signal",
]
