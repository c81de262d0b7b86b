"""
Application assembly and server lifecycle.

``bootstrap`` merges configuration, runs the assembly pipeline over a fresh
FastAPI app and returns a ``Bootstrap`` handle. The handle opens and
closes the network listener and accepts middleware added after assembly.
Unless ``start`` is False the listener is opened straight away.
"""

from collections.abc import Mapping
from concurrent.futures import Future
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI

from stepwise.api import health, pages
from stepwise.core.config import ConfigProvider, get_provider
from stepwise.core.exceptions import (
    ConfigurationError,
    NotStartedError,
    ServerStartError,
    ServerStateError,
    ServerStopError,
)
from stepwise.core.logging import configure_logging, get_logger, log_performance
from stepwise.core.security import security_headers_middleware
from stepwise.middleware.cookies import CookieCheckMiddleware
from stepwise.middleware.errors import ErrorHandlerMiddleware, error_handlers
from stepwise.middleware.request_logging import request_logging_middleware
from stepwise.middleware.sessions import SessionMiddleware, session_store
from stepwise.middleware.settings import settings
from stepwise.middleware.static import serve_static
from stepwise.middleware.user import HTTPMiddleware, UserMiddleware
from stepwise.pipeline import AssemblyContext, Pipeline
from stepwise.schemas.routes import RouteDefinition
from stepwise.server import Listener
from stepwise.services.i18n import Translator
from stepwise.services.steps import load_routes
from stepwise.services.themes import resolve_theme

logger = get_logger(__name__)

QUIET_ENVIRONMENTS = ("test", "ci")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Log startup and shutdown, release the session store on shutdown.

    Args:
        app: FastAPI application instance
    """
    config = app.state.config
    logger.info(
        "Application starting",
        app_name=config["app_name"],
        environment=config["env"],
        routes=len(config["routes"]),
    )

    yield

    logger.info("Application shutting down")
    await app.state.session_store.close()


# ============================================================================
# Assembly stages, in execution order
# ============================================================================

assembly = Pipeline()


@assembly.stage("config")
def merge_config(ctx: AssemblyContext) -> None:
    ctx.config = ctx.provider.get_effective_config(ctx.options)
    ctx.app.title = ctx.config["app_name"]


@assembly.stage("theme")
def resolve_configured_theme(ctx: AssemblyContext) -> None:
    if ctx.config.get("theme") is not None:
        ctx.config["theme"] = resolve_theme(ctx.config["theme"])


@assembly.stage("i18n")
def create_translator(ctx: AssemblyContext) -> None:
    directory = (Path(ctx.config["root"]) / ctx.config["translations"]).resolve()
    ctx.translator = Translator(
        directory,
        languages=ctx.config["languages"],
        default_language=ctx.config["default_language"],
    )
    ctx.app.state.translator = ctx.translator


@assembly.stage("security_headers")
def add_security_headers(ctx: AssemblyContext) -> None:
    ctx.add_http_middleware(security_headers_middleware(ctx.config))


@assembly.stage("health")
def add_health_check(ctx: AssemblyContext) -> None:
    ctx.app.include_router(health.router)


@assembly.stage("validate")
def validate_routes(ctx: AssemblyContext) -> None:
    routes = ctx.config.get("routes")
    if not routes:
        raise ConfigurationError("Must be called with a list of routes")

    for route in routes:
        if isinstance(route, RouteDefinition):
            steps = route.steps
        elif isinstance(route, Mapping):
            steps = route.get("steps")
        else:
            raise ConfigurationError(
                f"Route definitions must be mappings, got {type(route).__name__}",
                route=route,
            )
        if not steps:
            raise ConfigurationError(
                "Each route must define a set of one or more steps",
                route=route,
            )


@assembly.stage("request_logging")
def add_request_logging(ctx: AssemblyContext) -> None:
    if ctx.config["env"] in QUIET_ENVIRONMENTS:
        return
    configure_logging(ctx.config["log_level"], ctx.config["env"])
    ctx.config["logger"] = get_logger(ctx.config["app_name"])
    ctx.add_http_middleware(request_logging_middleware(ctx.config))


@assembly.stage("config_middleware")
def add_configured_middleware(ctx: AssemblyContext) -> None:
    for middleware in ctx.config.get("middleware") or []:
        ctx.add_http_middleware(middleware)


@assembly.stage("static")
def add_static(ctx: AssemblyContext) -> None:
    serve_static(ctx.app, ctx.config)


@assembly.stage("settings")
def add_settings(ctx: AssemblyContext) -> None:
    settings(ctx.app, ctx.config)


@assembly.stage("sessions")
def add_sessions(ctx: AssemblyContext) -> None:
    ctx.add_middleware(SessionMiddleware, **session_store(ctx.app, ctx.config))


@assembly.stage("pages")
def add_pages(ctx: AssemblyContext) -> None:
    ctx.app.include_router(pages.create_router(ctx.config))


@assembly.stage("user_middleware")
def add_user_middleware(ctx: AssemblyContext) -> None:
    ctx.add_http_middleware(ctx.user_middleware)


@assembly.stage("cookie_consent")
def add_cookie_check(ctx: AssemblyContext) -> None:
    exempt = [health.HEALTH_PATH.rsplit("/", 1)[0], ctx.config["static_prefix"]]
    exempt.extend(pages.enabled_paths(ctx.config))
    ctx.add_middleware(CookieCheckMiddleware, exempt=exempt)


@assembly.stage("routes")
def add_routes(ctx: AssemblyContext) -> None:
    load_routes(ctx.app, ctx.config)


@assembly.stage("errors")
def add_error_handlers(ctx: AssemblyContext) -> None:
    ctx.wrap_middleware(
        ErrorHandlerMiddleware,
        after=("security_headers", "request_logging"),
        **error_handlers(ctx.app, ctx.config),
    )


# ============================================================================
# Lifecycle
# ============================================================================


class ServerState(str, Enum):
    UNSTARTED = "unstarted"
    STARTED = "started"
    STOPPED = "stopped"


class Bootstrap:
    """
    Handle on an assembled app and its listener.

    A handle starts at most once: ``UNSTARTED -> STARTED -> STOPPED``.

    Attributes:
        app: The assembled FastAPI application
        config: Effective configuration the app was assembled with
        server: The listener, None until ``start`` is called
        state: Current lifecycle state
        startup: Future of the automatic start, if one was made
    """

    def __init__(
        self,
        app: FastAPI,
        config: dict[str, Any],
        provider: ConfigProvider,
        user_middleware: UserMiddleware,
        translator: Translator,
    ):
        self.app = app
        self.config = config
        self.provider = provider
        self.user_middleware = user_middleware
        self.translator = translator
        self.server: Optional[Listener] = None
        self.state = ServerState.UNSTARTED
        self.startup: Optional[Future] = None

    @property
    def port(self) -> Optional[int]:
        return self.server.port if self.server is not None else None

    def use(self, *middleware: HTTPMiddleware) -> "Bootstrap":
        """
        Add middleware ahead of the routes.

        Takes effect for requests arriving after the call, including when
        the server is already running.
        """
        self.user_middleware.use(*middleware)
        return self

    def start(self, start_config: Optional[Mapping[str, Any]] = None) -> "Future[Bootstrap]":
        """
        Open the listener.

        Args:
            start_config: Options merged over the assembled configuration,
                e.g. ``port``, ``host`` or ``protocol``

        Returns:
            Future resolved with this handle once listening

        Raises:
            ServerStateError: If the handle was already started
            ConfigurationError: If https is selected without a certificate
        """
        if self.state is not ServerState.UNSTARTED:
            raise ServerStateError(
                f"Cannot start a server that is {self.state.value}",
                state=self.state.value,
            )

        config = self.provider.get_effective_config(self.config, start_config)
        protocol = config["protocol"]
        if protocol == "https" and not (config["ssl_certfile"] and config["ssl_keyfile"]):
            raise ConfigurationError(
                "The https protocol requires ssl_certfile and ssl_keyfile"
            )
        tls = protocol == "https"

        self.server = Listener(
            self.app,
            host=config["host"],
            port=config["port"],
            ssl_certfile=config["ssl_certfile"] if tls else None,
            ssl_keyfile=config["ssl_keyfile"] if tls else None,
            log_level=config["log_level"],
        )
        self.state = ServerState.STARTED
        completion: Future[Bootstrap] = Future()

        def on_listen(opened: Future) -> None:
            error = opened.exception()
            if error is not None:
                self.state = ServerState.STOPPED
                logger.error(
                    "Unable to connect to server",
                    host=config["host"],
                    port=config["port"],
                    error=str(error),
                    error_type=type(error).__name__,
                )
                failure = ServerStartError(
                    "Unable to connect to server",
                    host=config["host"],
                    port=config["port"],
                )
                failure.__cause__ = error
                completion.set_exception(failure)
                return

            logger.info(
                "Server listening",
                protocol=protocol,
                host=config["host"],
                port=self.port,
            )
            completion.set_result(self)

        self.server.listen().add_done_callback(on_listen)
        return completion

    def stop(self) -> "Future[Bootstrap]":
        """
        Close the listener.

        Returns:
            Future resolved with this handle once closed

        Raises:
            NotStartedError: If ``start`` was never called
            ServerStateError: If the server is already stopped
        """
        if self.state is ServerState.UNSTARTED or self.server is None:
            raise NotStartedError("Cannot stop a server that was never started")
        if self.state is ServerState.STOPPED:
            raise ServerStateError("Server is already stopped", state=self.state.value)

        completion: Future[Bootstrap] = Future()

        def on_close(closed: Future) -> None:
            error = closed.exception()
            if error is not None:
                logger.error(
                    "Unable to stop server",
                    error=str(error),
                    error_type=type(error).__name__,
                )
                failure = ServerStopError("Unable to stop server")
                failure.__cause__ = error
                completion.set_exception(failure)
                return

            self.state = ServerState.STOPPED
            logger.info("Server stopped")
            completion.set_result(self)

        self.server.close().add_done_callback(on_close)
        return completion


def bootstrap(
    options: Optional[Mapping[str, Any]] = None,
    *,
    provider: Optional[ConfigProvider] = None,
) -> Bootstrap:
    """
    Assemble an app from configuration and, by default, start it.

    Args:
        options: Options merged over the defaults and overrides
        provider: Configuration provider (defaults to the process-wide one)

    Returns:
        The handle for the assembled app

    Raises:
        ConfigurationError: If routes or steps are missing or invalid
        UnknownThemeError: If the configured theme is not registered
    """
    provider = provider or get_provider()
    app = FastAPI(
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    context = AssemblyContext(app=app, provider=provider, options=options)

    with log_performance(logger, "application_assembly"):
        assembly.run(context)

    instance = Bootstrap(
        app,
        context.config,
        provider,
        context.user_middleware,
        context.translator,
    )

    if context.config.get("start") is not False:
        instance.startup = instance.start(context.config)

    return instance
