"""
Step router.

Builds the router serving one route definition: each step is a page with a
form. Submitted values are validated, kept in the session under the
route's key, and the user is sent on to the next step.
"""

import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable

from fastapi import APIRouter, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError

from stepwise.core.exceptions import ConfigurationError
from stepwise.core.logging import get_logger
from stepwise.middleware.sessions import get_session
from stepwise.middleware.settings import create_templates, render
from stepwise.schemas.routes import FieldOptions, RouteDefinition, StepOptions

logger = get_logger(__name__)

DEFAULT_TEMPLATE = "step.html"
ERRORS_KEY = "errors"
VALUES_KEY = "values"

NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")
EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

VALIDATORS: dict[str, Callable[[str], bool]] = {
    "required": lambda value: bool(value.strip()),
    "numeric": lambda value: not value or bool(NUMERIC.match(value)),
    "email": lambda value: not value or bool(EMAIL.match(value)),
}


def parse_route(route: Any) -> RouteDefinition:
    """
    Parse a route definition from configuration.

    Raises:
        ConfigurationError: If the definition is invalid
    """
    if isinstance(route, RouteDefinition):
        return route
    try:
        return RouteDefinition.model_validate(route)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid route definition: {e}",
            route=route,
        ) from e


def validate_fields(
    values: Mapping[str, str],
    names: list[str],
    fields: Mapping[str, FieldOptions],
) -> dict[str, str]:
    """
    Validate submitted values.

    Returns:
        Field name to failed validator name for each invalid field
    """
    errors: dict[str, str] = {}
    for name in names:
        options = fields.get(name) or FieldOptions()
        value = values.get(name, "")
        for validator in options.validate_:
            check = VALIDATORS.get(validator)
            if check is None:
                raise ConfigurationError(
                    f"Unknown validator '{validator}' on field '{name}'",
                    field=name,
                )
            if not check(value):
                errors[name] = validator
                break
    return errors


class StepController:
    """Handles GET and POST for a single step."""

    def __init__(
        self,
        route: RouteDefinition,
        path: str,
        step: StepOptions,
        templates=None,
    ):
        self.route = route
        self.path = path
        self.step = step
        self.templates = templates

    @property
    def url(self) -> str:
        return f"{self.route.prefix}{self.path}"

    @property
    def next_url(self) -> str:
        if self.step.next:
            return f"{self.route.prefix}{self.step.next}"
        return self.route.base_url

    @property
    def template(self) -> str:
        return self.step.template or DEFAULT_TEMPLATE

    def page_key(self) -> str:
        return self.path.strip("/").replace("/", ".") or "index"

    def field_context(self, translate) -> list[dict[str, Any]]:
        context = []
        for name in self.step.fields:
            options = self.route.fields.get(name) or FieldOptions()
            context.append(
                {
                    "name": name,
                    "label": translate(
                        f"fields.{name}.label", default=options.label or name
                    ),
                    "options": options.options,
                    "required": "required" in options.validate_,
                }
            )
        return context

    async def get(self, request: Request):
        session = get_session(request)
        state = session.setdefault(self.route.key, {})
        errors = state.pop(ERRORS_KEY, {})
        translate = request.app.state.translator.translate
        context = {
            "route": self.route,
            "step": self.step,
            "action": self.url,
            "header": translate(
                f"pages.{self.page_key()}.header", default=self.page_key()
            ),
            "fields": self.field_context(translate),
            "values": state.get(VALUES_KEY, {}),
            "errors": {
                name: translate(f"validation.{validator}", default=validator)
                for name, validator in errors.items()
            },
        }
        return render(request, self.template, context, templates=self.templates)

    async def post(self, request: Request):
        form = await request.form()
        submitted = {
            name: str(form.get(name, "")) for name in self.step.fields
        }
        session = get_session(request)
        state = session.setdefault(self.route.key, {})
        state.setdefault(VALUES_KEY, {}).update(submitted)

        errors = validate_fields(submitted, self.step.fields, self.route.fields)
        if errors:
            state[ERRORS_KEY] = errors
            logger.info(
                "Step validation failed",
                route=self.route.key,
                step=self.path,
                fields=sorted(errors),
            )
            return RedirectResponse(self.url, status_code=status.HTTP_303_SEE_OTHER)

        state.pop(ERRORS_KEY, None)
        return RedirectResponse(self.next_url, status_code=status.HTTP_303_SEE_OTHER)


def route_templates(route: RouteDefinition, route_config: Mapping[str, Any]):
    """Renderer searching the route's views ahead of the shared views."""
    if not route.views:
        return None
    paths = [Path(route_config["root"]) / route.views]
    paths.extend(route_config.get("shared_views") or [])
    return create_templates(paths, route_config.get("template_globals"))


def build_router(route_config: Mapping[str, Any]) -> APIRouter:
    """
    Build the router for one route definition.

    Args:
        route_config: Effective configuration plus ``route`` and
            ``shared_views``

    Returns:
        Router with a GET and POST endpoint for every step

    Raises:
        ConfigurationError: If the route definition is invalid
    """
    route = parse_route(route_config["route"])
    templates = route_templates(route, route_config)
    router = APIRouter(prefix=route.prefix)

    for path, step in route.steps.items():
        controller = StepController(route, path, step, templates)
        name = f"{route.key}:{path}"
        router.add_api_route(
            path,
            controller.get,
            methods=["GET"],
            response_class=HTMLResponse,
            name=name,
        )
        router.add_api_route(
            path,
            controller.post,
            methods=["POST"],
            name=f"{name}:submit",
        )

    logger.debug(
        "Route built",
        route=route.key,
        base_url=route.base_url,
        steps=list(route.steps),
    )
    return router


def load_routes(app, config: Mapping[str, Any]) -> None:
    """
    Mount a router for every route definition.

    Each router is built from the configuration extended with the route and
    the app's shared view directories.
    """
    for route in config["routes"]:
        route_config = {
            **config,
            "route": route,
            "shared_views": app.state.views,
            "template_globals": app.state.template_globals,
        }
        app.include_router(build_router(route_config))
