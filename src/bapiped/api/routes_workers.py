from __future__ import annotations

from aiohttp import web

from bapiped.api.app_keys import LOOP_STATE, REGISTRY
from bapiped.api.schemas import json_success
from bapiped.core.state_store import LoopState
from bapiped.errors import not_found_error, unavailable_error


def _ensure_running(request: web.Request) -> None:
    state = request.app[LOOP_STATE].state
    if state is LoopState.TERMINATED:
        raise unavailable_error("dispatch loop has terminated", {"state": state.value})


async def handle_workers(request: web.Request) -> web.Response:
    _ensure_running(request)
    workers = request.app[REGISTRY].snapshot()
    return json_success(request, {"workers": workers, "count": len(workers)})


async def handle_worker(request: web.Request) -> web.Response:
    _ensure_running(request)
    # Object paths are passed without their leading slash.
    device_id = "/" + request.match_info["device_id"].lstrip("/")
    worker = request.app[REGISTRY].get(device_id)
    if worker is None:
        raise not_found_error("unknown worker", {"device_id": device_id})
    return json_success(request, {"worker": worker.as_dict()})


def register_worker_routes(app: web.Application) -> None:
    app.router.add_get("/workers", handle_workers)
    app.router.add_get("/workers/{device_id:.+}", handle_worker)
