from __future__ import annotations

from aiohttp import web

from bapiped.api.app_keys import CONFIG, LOOP_STATE, REGISTRY
from bapiped.api.middleware import error_envelope_middleware
from bapiped.api.routes_status import register_status_routes
from bapiped.api.routes_workers import register_worker_routes


def create_api_app(*, registry, loop_state, config) -> web.Application:
    app = web.Application(middlewares=[error_envelope_middleware])
    app[REGISTRY] = registry
    app[LOOP_STATE] = loop_state
    app[CONFIG] = config

    register_status_routes(app)
    register_worker_routes(app)
    return app
