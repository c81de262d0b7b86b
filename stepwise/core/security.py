"""
Security response headers.

Every response gets the baseline hardening headers plus a Content Security
Policy built from ``CSP_DIRECTIVES``. HSTS is only sent for https
listeners.
"""

from collections.abc import Mapping
from typing import Any, Callable

from starlette.requests import Request
from starlette.responses import Response

CSP_DIRECTIVES: dict[str, list[str]] = {
    "default-src": ["'none'"],
    "style-src": ["'self'"],
    "img-src": ["'self'"],
    "font-src": ["'self'", "data:"],
    "script-src": ["'self'", "'unsafe-inline'"],
}

BASE_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Referrer-Policy": "no-referrer",
}

HSTS_HEADER = "max-age=15552000; includeSubDomains"


def build_csp_header(directives: Mapping[str, list[str]] = CSP_DIRECTIVES) -> str:
    """
    Serialize CSP directives into a header value.

    >>> build_csp_header({"default-src": ["'none'"], "img-src": ["'self'"]})
    "default-src 'none'; img-src 'self'"
    """
    return "; ".join(
        f"{name} {' '.join(sources)}" for name, sources in directives.items()
    )


def get_security_headers(config: Mapping[str, Any]) -> dict[str, str]:
    """
    Get the security headers for a configuration.

    Args:
        config: Effective configuration

    Returns:
        Header name to value mapping
    """
    headers = dict(BASE_HEADERS)
    headers["Content-Security-Policy"] = build_csp_header()
    if config.get("protocol") == "https":
        headers["Strict-Transport-Security"] = HSTS_HEADER
    return headers


def security_headers_middleware(config: Mapping[str, Any]) -> Callable:
    """
    Create the HTTP middleware adding security headers to responses.

    Args:
        config: Effective configuration

    Returns:
        Middleware function for ``BaseHTTPMiddleware``
    """
    security_headers = get_security_headers(config)

    async def add_security_headers(request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in security_headers.items():
            response.headers.setdefault(header, value)
        return response

    return add_security_headers
