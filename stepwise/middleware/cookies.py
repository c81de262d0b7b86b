"""
Cookie support check.

A request without any cookies gets a check cookie and is redirected back
to the same URL with a marker parameter. If the marked request still
carries no cookies, the client does not support them and the
cookies-required page is shown.
"""

from collections.abc import Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse, Response

from stepwise.core.exceptions import CookiesRequiredError
from stepwise.core.logging import get_logger
from stepwise.middleware.errors import render_error

logger = get_logger(__name__)

CHECK_NAME = "stepwise-cookie-check"
EXEMPT_PREFIXES = ("/healthz",)


class CookieCheckMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        cookie_name: str = CHECK_NAME,
        param_name: str = CHECK_NAME,
        exempt: Iterable[str] = EXEMPT_PREFIXES,
    ):
        super().__init__(app)
        self.cookie_name = cookie_name
        self.param_name = param_name
        self.exempt = tuple(exempt)

    def is_exempt(self, path: str) -> bool:
        return any(
            path == prefix or path.startswith(prefix.rstrip("/") + "/")
            for prefix in self.exempt
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.cookies or self.is_exempt(request.url.path):
            return await call_next(request)

        if self.param_name in request.query_params:
            logger.info("Client does not support cookies", path=request.url.path)
            return render_error(
                request,
                CookiesRequiredError("Cookies required"),
                CookiesRequiredError.status_code,
            )

        url = request.url.include_query_params(**{self.param_name: ""})
        response = RedirectResponse(str(url), status_code=302)
        response.set_cookie(self.cookie_name, "1", httponly=True, samesite="lax")
        return response
