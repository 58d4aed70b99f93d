from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from aiohttp import web

from bapiped.errors import BapipeError


def envelope(request_id: str, *, data: dict[str, Any] | None = None, error: BapipeError | None = None) -> dict[str, Any]:
    """Body shared by every status API response.

    Exactly one of ``data`` and ``error`` is set; ``ok`` mirrors which.
    """
    return {
        "ok": error is None,
        "data": data if error is None else None,
        "error": None if error is None else {"code": error.code, "message": error.message, "details": error.details or {}},
        "request_id": request_id,
        "ts": datetime.now(timezone.utc).isoformat(),
    }


def json_success(request: web.Request, data: dict[str, Any], status: int = 200) -> web.Response:
    return web.json_response(envelope(request["request_id"], data=data), status=status)


def json_error(request: web.Request, error: BapipeError, status: int) -> web.Response:
    return web.json_response(envelope(request["request_id"], error=error), status=status)
