from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Iterable

from bapiped.errors import pipeline_error


logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    PLAYING = "playing"
    NULL = "null"


def _load_gst() -> tuple[Any, Any]:
    import gi  # type: ignore[import-not-found]

    gi.require_version("Gst", "1.0")
    from gi.repository import GLib, Gst  # type: ignore[import-not-found]

    if not Gst.is_initialized():
        Gst.init(None)
    return Gst, GLib


class GstEngine:
    """Thin wrapper over GStreamer's parse-launch API.

    Every failure is surfaced as a ``PipelineError`` so callers only deal
    with one exception type.
    """

    def __init__(self) -> None:
        self._gst, self._glib = _load_gst()

    def missing_elements(self, names: Iterable[str]) -> list[str]:
        return [name for name in names if self._gst.ElementFactory.find(name) is None]

    def build_pipeline(self, description: str) -> Any:
        try:
            pipeline = self._gst.parse_launch(description)
        except self._glib.Error as exc:
            raise pipeline_error("failed to parse pipeline", {"error": str(exc)}) from exc
        if pipeline is None:
            raise pipeline_error("failed to parse pipeline", {"description": description})
        return pipeline

    def has_element(self, pipeline: Any, element_name: str) -> bool:
        return pipeline.get_by_name(element_name) is not None

    def set_element_property(self, pipeline: Any, element_name: str, prop: str, value: Any) -> None:
        element = pipeline.get_by_name(element_name)
        if element is None:
            raise pipeline_error("pipeline element not found", {"element": element_name})
        try:
            element.set_property(prop, value)
        except (TypeError, ValueError) as exc:
            raise pipeline_error(
                "failed to set element property",
                {"element": element_name, "property": prop, "error": str(exc)},
            ) from exc

    def caps_from_string(self, caps: str) -> Any:
        value = self._gst.Caps.from_string(caps)
        if value is None:
            raise pipeline_error("invalid caps", {"caps": caps})
        return value

    def structure_from_string(self, structure: str) -> Any:
        value = self._gst.Structure.new_from_string(structure)
        if value is None:
            raise pipeline_error("invalid structure", {"structure": structure})
        return value

    def set_state(self, pipeline: Any, state: PipelineState) -> None:
        target = self._gst.State.PLAYING if state is PipelineState.PLAYING else self._gst.State.NULL
        result = pipeline.set_state(target)
        if result == self._gst.StateChangeReturn.FAILURE:
            raise pipeline_error("pipeline state change failed", {"state": state.value})

    def release(self, pipeline: Any) -> None:
        # Elements must be in NULL before the last reference goes away.
        pipeline.set_state(self._gst.State.NULL)
