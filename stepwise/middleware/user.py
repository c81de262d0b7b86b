"""
Middleware registry that can grow after the app is assembled.

Starlette freezes its middleware stack on the first request, so functions
added later through ``Bootstrap.use`` are kept in a registry. The registry
itself is installed once and dispatches through whatever functions it
holds when each request arrives.
"""

from typing import Awaitable, Callable

from fastapi import Request
from starlette.responses import Response

CallNext = Callable[[Request], Awaitable[Response]]
HTTPMiddleware = Callable[[Request, CallNext], Awaitable[Response]]


class UserMiddleware:
    """Ordered, mutable list of HTTP middleware functions."""

    def __init__(self) -> None:
        self._middleware: list[HTTPMiddleware] = []

    def use(self, *middleware: HTTPMiddleware) -> "UserMiddleware":
        """
        Append middleware functions.

        Raises:
            TypeError: If a middleware is not callable
        """
        for fn in middleware:
            if not callable(fn):
                raise TypeError(f"Middleware must be callable, got {fn!r}")
            self._middleware.append(fn)
        return self

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        chain = list(self._middleware)

        async def dispatch(index: int, request: Request) -> Response:
            if index == len(chain):
                return await call_next(request)
            return await chain[index](request, lambda req: dispatch(index + 1, req))

        return await dispatch(0, request)
