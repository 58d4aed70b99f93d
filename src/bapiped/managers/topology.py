from __future__ import annotations

from dataclasses import dataclass

from bapiped.constants import (
    BACKEND_FORMAT,
    BACKEND_RATE,
    BACKEND_SAMPLE_BYTES,
    CAPTURE_QUEUE_MS,
    DEVICE_FORMAT,
)
from bapiped.core.supervisor import has_topology
from bapiped.domain.models import Direction, PcmDescriptor


FD_ELEMENT = "fdelem"
PW_ELEMENT = "pwelem"

STREAM_PROPERTIES = "props,media.role=(string)Communication,wireplumber.keep-linked=(string)1"

REQUIRED_ELEMENTS = (
    "audiotestsrc",
    "audiomixer",
    "capsfilter",
    "fdsrc",
    "fdsink",
    "rawaudioparse",
    "audioconvert",
    "audioresample",
    "queue",
    "pipewiresink",
    "pipewiresrc",
)


@dataclass(frozen=True)
class Topology:
    direction: Direction
    description: str
    caps_elements: tuple[str, ...]
    optional_caps_elements: tuple[str, ...] = ()
    stream_properties: str | None = None


def device_caps(channels: int, sampling: int) -> str:
    return (
        f"audio/x-raw,format={DEVICE_FORMAT},layout=interleaved,"
        f"channels={channels},rate={sampling}"
    )


def capture_queue_bytes(channels: int) -> int:
    return BACKEND_SAMPLE_BYTES * max(channels, 1) * BACKEND_RATE * CAPTURE_QUEUE_MS // 1000


def sink_topology() -> Topology:
    description = (
        # Silent live source keeps the output continuous across gaps from
        # the device and clocks the pipeline from the system clock, which
        # is what BlueALSA uses on the sending side.
        "audiotestsrc is-live=true wave=silence ! capsfilter name=capsf "
        "! audiomixer name=m "
        # rawaudioparse turns the byte stream into timed, aligned buffers.
        f"fdsrc name={FD_ELEMENT} do-timestamp=true ! capsfilter name=capsf2 "
        "! rawaudioparse use-sink-caps=true ! m. "
        "m.src ! capsfilter name=capsf3 ! audioconvert ! audioresample "
        f"! audio/x-raw,format={BACKEND_FORMAT},rate={BACKEND_RATE} "
        f"! pipewiresink name={PW_ELEMENT}"
    )
    return Topology(
        direction=Direction.SINK,
        description=description,
        caps_elements=("capsf",),
        optional_caps_elements=("capsf2", "capsf3"),
    )


def capture_topology(channels: int) -> Topology:
    queue_bytes = capture_queue_bytes(channels)
    description = (
        # The leaky queue lets pipewiresrc keep running while fdsink is
        # blocked, which is the normal state outside of a call.
        f"pipewiresrc name={PW_ELEMENT} "
        f"! audio/x-raw,format={BACKEND_FORMAT},rate={BACKEND_RATE},channels={max(channels, 1)} "
        f"! queue leaky=downstream max-size-time=0 max-size-buffers=0 max-size-bytes={queue_bytes} "
        "! audioconvert ! audioresample ! capsfilter name=capsf "
        f"! fdsink name={FD_ELEMENT}"
    )
    return Topology(
        direction=Direction.SOURCE,
        description=description,
        caps_elements=("capsf",),
        stream_properties=STREAM_PROPERTIES,
    )


def topology_for(direction: Direction, descriptor: PcmDescriptor) -> Topology | None:
    if not has_topology(direction, descriptor.profile):
        return None
    if direction is Direction.SINK:
        return sink_topology()
    return capture_topology(descriptor.channels)
