from __future__ import annotations

from aiohttp import web

from bapiped import __version__
from bapiped.api.app_keys import CONFIG, LOOP_STATE, REGISTRY
from bapiped.api.schemas import json_success
from bapiped.constants import API_VERSION, APP_NAME, DAEMON_NAME


async def handle_status(request: web.Request) -> web.Response:
    config = request.app[CONFIG]
    registry = request.app[REGISTRY]
    loop_state = request.app[LOOP_STATE]

    data = {
        "service": {
            "app": APP_NAME,
            "daemon": DAEMON_NAME,
            "version": __version__,
            "api_version": API_VERSION,
            "socket_path": str(config.paths.socket_path),
            "bluealsa_service": config.service,
            "bus": config.bus,
        },
        "loop": loop_state.snapshot(),
        "workers": {
            "count": len(registry),
            "running_pipelines": sum(len(worker.active_directions()) for worker in registry),
        },
    }
    return json_success(request, data)


def register_status_routes(app: web.Application) -> None:
    app.router.add_get("/status", handle_status)
