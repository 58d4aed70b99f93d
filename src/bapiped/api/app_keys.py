from __future__ import annotations

from typing import Any

from aiohttp import web


def _app_key(name: str) -> Any:
    app_key_cls = getattr(web, "AppKey", None)
    if app_key_cls is None:
        # Compatibility with aiohttp versions that do not expose web.AppKey.
        return name
    return app_key_cls(name, object)


REGISTRY: Any = _app_key("registry")
LOOP_STATE: Any = _app_key("loop_state")
CONFIG: Any = _app_key("config")
