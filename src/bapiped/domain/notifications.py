"""BlueALSA notifications and their decoding from raw D-Bus signals.

Decoding happens once, at the transport boundary. Everything past this
module deals with the three notification dataclasses only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from dbus_next import Variant

from bapiped.constants import (
    BLUEALSA_INTERFACE_MANAGER,
    BLUEALSA_INTERFACE_PCM,
    DBUS_INTERFACE_PROPERTIES,
)
from bapiped.domain.models import PcmDescriptor, PcmFlags, PcmPropertyChanges
from bapiped.errors import decode_error


@dataclass(frozen=True)
class RawSignal:
    path: str | None
    interface: str | None
    member: str | None
    signature: str = ""
    body: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class DeviceAdded:
    descriptor: PcmDescriptor


@dataclass(frozen=True)
class DeviceRemoved:
    device_id: str


@dataclass(frozen=True)
class PropertyChanged:
    device_id: str
    interface_name: str
    changes: PcmPropertyChanges


Notification = Union[DeviceAdded, DeviceRemoved, PropertyChanged]

_SIGNALS = {
    (BLUEALSA_INTERFACE_MANAGER, "PCMAdded"),
    (BLUEALSA_INTERFACE_MANAGER, "PCMRemoved"),
    (DBUS_INTERFACE_PROPERTIES, "PropertiesChanged"),
}


def is_bluealsa_signal(raw: RawSignal) -> bool:
    return (raw.interface, raw.member) in _SIGNALS


def _profile_from_transport(transport: str) -> PcmFlags:
    head = transport.split("-", 1)[0].upper()
    if head == "A2DP":
        return PcmFlags.PROFILE_A2DP
    if head in {"HFP", "HSP"}:
        return PcmFlags.PROFILE_SCO
    return PcmFlags.NONE


def _modes_from_names(names: list[str]) -> PcmFlags:
    modes = PcmFlags.NONE
    for name in names:
        lower = name.lower()
        if lower == "source":
            modes |= PcmFlags.SOURCE
        elif lower == "sink":
            modes |= PcmFlags.SINK
    return PcmFlags(modes)


def _expect(name: str, variant: Any, *signatures: str) -> Any:
    if not isinstance(variant, Variant):
        raise decode_error(f"property {name} is not a variant", {"property": name})
    if variant.signature not in signatures:
        raise decode_error(
            f"property {name} has unexpected type",
            {"property": name, "expected": list(signatures), "got": variant.signature},
        )
    return variant.value


def parse_pcm_properties(props: Any) -> PcmPropertyChanges:
    if not isinstance(props, dict):
        raise decode_error("PCM properties must be a dictionary")

    values: dict[str, Any] = {}
    if "Transport" in props:
        values["profile"] = _profile_from_transport(_expect("Transport", props["Transport"], "s"))
    if "Modes" in props:
        values["modes"] = _modes_from_names(list(_expect("Modes", props["Modes"], "as")))
    elif "Mode" in props:
        values["modes"] = _modes_from_names([_expect("Mode", props["Mode"], "s")])
    if "Codec" in props:
        codec = _expect("Codec", props["Codec"], "q", "s")
        values["codec_selected"] = bool(codec)
    if "Channels" in props:
        values["channels"] = int(_expect("Channels", props["Channels"], "y"))
    if "Sampling" in props:
        values["sampling"] = int(_expect("Sampling", props["Sampling"], "u"))
    return PcmPropertyChanges(**values)


def descriptor_from_properties(device_id: str, props: Any) -> PcmDescriptor:
    return parse_pcm_properties(props).apply_to(PcmDescriptor(device_id=device_id))


def decode_signal(raw: RawSignal) -> Notification:
    key = (raw.interface, raw.member)
    body = list(raw.body)

    if key == (BLUEALSA_INTERFACE_MANAGER, "PCMAdded"):
        if raw.signature != "oa{sv}" or len(body) != 2:
            raise decode_error("Couldn't add new PCM: invalid signal signature", {"signature": raw.signature})
        return DeviceAdded(descriptor=descriptor_from_properties(str(body[0]), body[1]))

    if key == (BLUEALSA_INTERFACE_MANAGER, "PCMRemoved"):
        if raw.signature != "o" or len(body) != 1:
            raise decode_error("Couldn't remove PCM: invalid signal signature", {"signature": raw.signature})
        return DeviceRemoved(device_id=str(body[0]))

    if key == (DBUS_INTERFACE_PROPERTIES, "PropertiesChanged"):
        if not raw.signature.startswith("sa{sv}") or len(body) < 2 or not raw.path:
            raise decode_error("Couldn't update PCM: invalid signal signature", {"signature": raw.signature})
        interface_name = str(body[0])
        if interface_name != BLUEALSA_INTERFACE_PCM:
            raise decode_error(
                "Couldn't update PCM: unexpected interface",
                {"interface": interface_name},
            )
        return PropertyChanged(
            device_id=raw.path,
            interface_name=interface_name,
            changes=parse_pcm_properties(body[1]),
        )

    raise decode_error(
        "unsupported signal",
        {"interface": raw.interface, "member": raw.member},
    )
