from __future__ import annotations

import logging
from uuid import uuid4

from aiohttp import web

from bapiped.api.schemas import json_error
from bapiped.errors import BapipeError


logger = logging.getLogger(__name__)

# Daemon error codes the API can surface, and the HTTP status for each.
HTTP_STATUS = {
    "E_NOT_FOUND": 404,
    "E_UNAVAILABLE": 503,
}


@web.middleware
async def error_envelope_middleware(request: web.Request, handler: web.RequestHandler) -> web.StreamResponse:
    """Tag the request with an id and render every failure as an envelope."""
    request_id = request.headers.get("x-request-id") or str(uuid4())
    request["request_id"] = request_id

    try:
        return await handler(request)
    except BapipeError as exc:
        status = HTTP_STATUS.get(exc.code, 500)
        logger.warning("api.error rid=%s path=%s code=%s status=%s", request_id, request.path, exc.code, status)
        return json_error(request, exc, status)
    except web.HTTPException as exc:
        # Unrouted paths and wrong methods from aiohttp's router.
        code = "E_NOT_FOUND" if exc.status == 404 else "E_HTTP"
        logger.debug("api.http_error rid=%s path=%s status=%s", request_id, request.path, exc.status)
        return json_error(request, BapipeError(code=code, message=exc.reason), exc.status)
    except Exception as exc:  # pragma: no cover - guardrail path
        logger.exception("api.crash rid=%s path=%s error=%s", request_id, request.path, exc)
        return json_error(request, BapipeError(code="E_INTERNAL", message="Internal server error"), 500)
