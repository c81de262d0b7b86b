"""
Request logging with correlation IDs.

Health checks and static assets are served without log lines; every other
request is logged on arrival and completion together with the route that
handled it.
"""

from collections.abc import Mapping
from typing import Any

from fastapi import Request
from starlette.responses import Response

from stepwise.api.health import HEALTH_PATH
from stepwise.core.logging import (
    clear_context,
    get_logger,
    log_performance,
    set_request_id,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def quiet_prefixes(config: Mapping[str, Any]) -> tuple[str, ...]:
    """Path prefixes served without request logs."""
    return (
        HEALTH_PATH.rsplit("/", 1)[0] + "/",
        config["static_prefix"].rstrip("/") + "/",
    )


def route_name(request: Request) -> str:
    """Name of the matched route, e.g. ``apply:/name``, else the path."""
    route = request.scope.get("route")
    return getattr(route, "name", None) or request.url.path


def request_logging_middleware(config: Mapping[str, Any]):
    """
    Create the request logging middleware for a configuration.

    Args:
        config: Effective configuration; ``logger`` is used when set

    Returns:
        Middleware function for ``BaseHTTPMiddleware``
    """
    log = config.get("logger") or logger
    quiet = quiet_prefixes(config)

    async def log_request(request: Request, call_next) -> Response:
        if request.url.path.startswith(quiet):
            return await call_next(request)

        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        log.info(
            "Request received",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )
        try:
            with log_performance(log, "request", method=request.method):
                response = await call_next(request)
            log.info(
                "Request completed",
                method=request.method,
                route=route_name(request),
                status_code=response.status_code,
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()

    return log_request
