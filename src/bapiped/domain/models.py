from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, IntFlag
import os
from typing import Any


class PcmFlags(IntFlag):
    NONE = 0
    PROFILE_A2DP = 1 << 0
    PROFILE_SCO = 1 << 1
    SOURCE = 1 << 2
    SINK = 1 << 3

    PROFILE_MASK = PROFILE_A2DP | PROFILE_SCO
    MODE_MASK = SOURCE | SINK


class Direction(str, Enum):
    SINK = "sink"
    SOURCE = "source"

    @property
    def flag(self) -> PcmFlags:
        return PcmFlags.SINK if self is Direction.SINK else PcmFlags.SOURCE


class Action(str, Enum):
    STOP = "stop"
    START_SINK = "start_sink"
    START_SOURCE = "start_source"
    START_BOTH = "start_both"
    NO_CHANGE = "no_change"

    @property
    def directions(self) -> tuple[Direction, ...]:
        if self is Action.START_SINK:
            return (Direction.SINK,)
        if self is Action.START_SOURCE:
            return (Direction.SOURCE,)
        if self is Action.START_BOTH:
            return (Direction.SINK, Direction.SOURCE)
        return ()


@dataclass(frozen=True)
class PcmDescriptor:
    device_id: str
    flags: PcmFlags = PcmFlags.NONE
    codec_selected: bool = False
    channels: int = 0
    sampling: int = 0

    @property
    def profile(self) -> PcmFlags:
        return self.flags & PcmFlags.PROFILE_MASK

    @property
    def modes(self) -> PcmFlags:
        return self.flags & PcmFlags.MODE_MASK


@dataclass(frozen=True)
class PcmPropertyChanges:
    """Validated subset of PCM properties carried by one notification.

    ``None`` means "not present in this notification"; profile and modes
    replace their half of the flag set independently.
    """

    profile: PcmFlags | None = None
    modes: PcmFlags | None = None
    codec_selected: bool | None = None
    channels: int | None = None
    sampling: int | None = None

    def apply_to(self, descriptor: PcmDescriptor) -> PcmDescriptor:
        flags = int(descriptor.flags)
        if self.profile is not None:
            flags = (flags & ~int(PcmFlags.PROFILE_MASK)) | int(self.profile)
        if self.modes is not None:
            flags = (flags & ~int(PcmFlags.MODE_MASK)) | int(self.modes)
        return replace(
            descriptor,
            flags=PcmFlags(flags),
            codec_selected=descriptor.codec_selected if self.codec_selected is None else self.codec_selected,
            channels=descriptor.channels if self.channels is None else self.channels,
            sampling=descriptor.sampling if self.sampling is None else self.sampling,
        )


@dataclass
class PcmChannel:
    data_fd: int
    control_fd: int

    def close(self) -> None:
        fds, self.data_fd, self.control_fd = (self.data_fd, self.control_fd), -1, -1
        error: OSError | None = None
        for fd in fds:
            if fd == -1:
                continue
            try:
                os.close(fd)
            except OSError as exc:
                error = error or exc
        if error is not None:
            raise error

    @property
    def closed(self) -> bool:
        return self.data_fd == -1 and self.control_fd == -1


@dataclass
class Worker:
    descriptor: PcmDescriptor
    pipelines: dict[Direction, Any] = field(default_factory=dict)
    channels: dict[Direction, PcmChannel] = field(default_factory=dict)

    @property
    def device_id(self) -> str:
        return self.descriptor.device_id

    @property
    def flags(self) -> PcmFlags:
        return self.descriptor.flags

    def running(self, direction: Direction) -> bool:
        return self.pipelines.get(direction) is not None

    def active_directions(self) -> list[Direction]:
        return [d for d in Direction if self.running(d)]

    def fully_stopped(self) -> bool:
        return not self.pipelines and not self.channels

    def as_dict(self) -> dict[str, Any]:
        desc = self.descriptor
        return {
            "device_id": desc.device_id,
            "profile": _flag_names(desc.profile),
            "modes": _flag_names(desc.modes),
            "codec_selected": desc.codec_selected,
            "channels": desc.channels,
            "sampling": desc.sampling,
            "pipelines": [d.value for d in self.active_directions()],
            "open_channels": sorted(d.value for d in self.channels),
        }


def _flag_names(flags: PcmFlags) -> list[str]:
    names = []
    for member in (PcmFlags.PROFILE_A2DP, PcmFlags.PROFILE_SCO, PcmFlags.SOURCE, PcmFlags.SINK):
        if flags & member:
            names.append(str(member.name).lower().replace("profile_", ""))
    return names
