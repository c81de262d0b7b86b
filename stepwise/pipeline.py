"""
Ordered assembly pipeline.

Assembly is a sequence of named stages run in declaration order. Several
stages depend on earlier ones (views before pages, everything before the
error handlers), so the order lives in one reviewable place instead of
being spread across calls.

Middleware declared by stages is collected and installed once all stages
have run, outermost first: the first middleware declared sees every
request first and every response last. A stage may instead wrap its
middleware around the layers of other stages with ``wrap_middleware``.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, NamedTuple, Optional

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware

from stepwise.core.config import ConfigProvider
from stepwise.core.logging import get_logger
from stepwise.middleware.user import UserMiddleware
from stepwise.services.i18n import Translator

logger = get_logger(__name__)


class MiddlewareEntry(NamedTuple):
    stage: str
    cls: type
    options: dict[str, Any]


@dataclass
class AssemblyContext:
    """State shared by the stages of one assembly."""

    app: FastAPI
    provider: ConfigProvider
    options: Optional[Mapping[str, Any]] = None
    config: dict[str, Any] = field(default_factory=dict)
    translator: Optional[Translator] = None
    user_middleware: UserMiddleware = field(default_factory=UserMiddleware)
    middleware: list[MiddlewareEntry] = field(default_factory=list)
    current_stage: str = ""

    def add_middleware(self, cls: type, **options: Any) -> None:
        """Declare ASGI middleware at the current position in the chain."""
        self.middleware.append(MiddlewareEntry(self.current_stage, cls, options))

    def wrap_middleware(
        self, cls: type, after: tuple[str, ...] = (), **options: Any
    ) -> None:
        """
        Declare ASGI middleware just inside the entries of the ``after`` stages.

        The middleware sits inside those entries and outside every other
        layer declared so far. Without a matching entry it becomes outermost.
        """
        index = 0
        for position, entry in enumerate(self.middleware):
            if entry.stage in after:
                index = position + 1
        self.middleware.insert(
            index, MiddlewareEntry(self.current_stage, cls, options)
        )

    def add_http_middleware(self, dispatch: Callable) -> None:
        """Declare an ``async (request, call_next)`` middleware function."""
        self.add_middleware(BaseHTTPMiddleware, dispatch=dispatch)

    def middleware_stages(self) -> list[str]:
        """Stages that declared middleware, outermost first."""
        return [entry.stage for entry in self.middleware]

    def install_middleware(self) -> None:
        # add_middleware wraps the existing stack, so install innermost first
        for entry in reversed(self.middleware):
            self.app.add_middleware(entry.cls, **entry.options)


Stage = Callable[[AssemblyContext], None]


class Pipeline:
    """Named stages executed in the order they were declared."""

    def __init__(self) -> None:
        self._stages: list[tuple[str, Stage]] = []

    def stage(self, name: str) -> Callable[[Stage], Stage]:
        """
        Decorator appending a stage.

        Raises:
            ValueError: If a stage with the same name exists
        """

        def register(fn: Stage) -> Stage:
            if name in self.stage_names():
                raise ValueError(f"Duplicate assembly stage '{name}'")
            self._stages.append((name, fn))
            return fn

        return register

    def stage_names(self) -> list[str]:
        return [name for name, _ in self._stages]

    def run(self, context: AssemblyContext) -> AssemblyContext:
        """
        Run every stage, then install the declared middleware.

        Any exception raised by a stage propagates; nothing is installed.
        """
        for name, fn in self._stages:
            context.current_stage = name
            logger.debug("Assembly stage", stage=name)
            fn(context)
        context.install_middleware()
        return context
