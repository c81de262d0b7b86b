"""
Not-found and error pages.

The not-found handler answers requests no route matched. The error
middleware wraps every layer except the security headers and request
logging, so exceptions raised by routes, sessions, the cookie check or any
configured middleware all end on the error page. Error content comes from the ``errors`` translations; stack traces are only
shown when running in development.
"""

import traceback
from collections.abc import Mapping
from typing import Any

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from stepwise.core.config import is_development
from stepwise.core.exceptions import CookiesRequiredError, StepwiseError
from stepwise.core.logging import get_logger, get_request_id
from stepwise.middleware.settings import render

logger = get_logger(__name__)

ERROR_KEYS = {
    403: "errors.cookies-required",
    404: "errors.404",
    503: "errors.unavailable",
}


def error_content(translate, status_code: int, exc: BaseException) -> dict[str, Any]:
    """Translated title and message for an error page."""
    key = ERROR_KEYS.get(status_code, "errors.default")
    if isinstance(exc, CookiesRequiredError):
        key = "errors.cookies-required"
    return {
        "title": translate(f"{key}.title", default="Something went wrong"),
        "message": translate(
            f"{key}.message",
            default="Sorry, there was a problem with the service.",
        ),
    }


def render_error(
    request: Request,
    exc: BaseException,
    status_code: int = 500,
    debug: bool = False,
) -> Response:
    """
    Render the error page for an exception.

    Args:
        request: Request that failed
        exc: Exception raised while handling it
        status_code: Response status
        debug: Include the stack trace in the page

    Returns:
        Rendered error page
    """
    translator = request.app.state.translator
    context = {
        "status_code": status_code,
        "request_id": get_request_id(),
        "content": error_content(translator.translate, status_code, exc),
        "error": str(exc) if debug else None,
        "stack": "".join(traceback.format_exception(exc)) if debug else None,
    }
    return render(request, "error.html", context, status_code=status_code)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Render unhandled exceptions as error pages."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except StarletteHTTPException as exc:
            logger.warning(
                "Request rejected by middleware",
                method=request.method,
                path=request.url.path,
                status_code=exc.status_code,
            )
            return render_error(request, exc, exc.status_code, self.debug)
        except StepwiseError as exc:
            logger.warning(
                "Request failed",
                method=request.method,
                path=request.url.path,
                error=str(exc),
                error_type=type(exc).__name__,
                status_code=exc.status_code,
            )
            return render_error(request, exc, exc.status_code, self.debug)
        except Exception as exc:
            logger.error(
                "Unhandled exception",
                method=request.method,
                path=request.url.path,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            return render_error(request, exc, 500, self.debug)


def not_found_handler(request_logger=None):
    """
    Create the handler for unmatched requests and other HTTP errors.

    Args:
        request_logger: Logger used for not-found warnings

    Returns:
        Exception handler for Starlette HTTP exceptions
    """
    log = request_logger or logger

    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> Response:
        debug = is_development(request.app.state.config)
        if exc.status_code == 404:
            log.warning(
                "Page not found",
                method=request.method,
                path=request.url.path,
            )
            translate = request.app.state.translator.translate
            return render(
                request,
                "404.html",
                {"content": error_content(translate, 404, exc)},
                status_code=404,
            )
        response = render_error(request, exc, exc.status_code, debug)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    return handle_http_exception


def error_handlers(app: FastAPI, config: Mapping[str, Any]) -> dict[str, Any]:
    """
    Register the not-found handler and return error middleware options.

    Args:
        app: Application being assembled
        config: Effective configuration

    Returns:
        Keyword arguments for ``ErrorHandlerMiddleware``
    """
    app.add_exception_handler(
        StarletteHTTPException, not_found_handler(config.get("logger"))
    )
    return {"debug": is_development(config)}
