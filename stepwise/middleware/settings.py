"""
View and application settings wiring.

Sets up the Jinja2 environment every page is rendered with. Views are
searched in order: the service's own view directory, then the theme's.
Route-specific view directories are searched ahead of both when a step
router renders.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.templating import Jinja2Templates
from jinja2 import ChoiceLoader, Environment, FileSystemLoader, select_autoescape
from starlette.responses import Response

from stepwise.core.config import is_development
from stepwise.core.logging import get_logger

logger = get_logger(__name__)


def view_paths(config: Mapping[str, Any]) -> list[Path]:
    """
    Get the shared view directories for a configuration.

    Args:
        config: Effective configuration with a resolved theme

    Returns:
        Existing view directories in search order
    """
    paths: list[Path] = []
    if config.get("views"):
        paths.append(Path(config["root"]) / config["views"])
    theme = config.get("theme")
    if theme is not None and getattr(theme, "views", None) is not None:
        paths.append(Path(theme.views))
    return [path for path in paths if path.is_dir()]


def create_templates(
    paths: list[Path],
    globals_: Optional[Mapping[str, Any]] = None,
) -> Jinja2Templates:
    """
    Create a template renderer over the given view directories.

    Args:
        paths: View directories in search order
        globals_: Values available to every template

    Returns:
        Jinja2Templates renderer
    """
    env = Environment(
        loader=ChoiceLoader([FileSystemLoader(str(path)) for path in paths]),
        autoescape=select_autoescape(["html", "xml"]),
    )
    if globals_:
        env.globals.update(globals_)
    return Jinja2Templates(env=env)


def settings(app: FastAPI, config: Mapping[str, Any]) -> None:
    """
    Wire views and shared state onto the app.

    Args:
        app: Application being assembled
        config: Effective configuration
    """
    translator = app.state.translator
    paths = view_paths(config)
    static_prefix = config["static_prefix"].rstrip("/")

    app.state.config = config
    app.state.views = paths
    app.state.template_globals = {
        "t": translator.translate,
        "app_name": config["app_name"],
        "ga_tag_id": config.get("ga_tag_id"),
        "asset_path": static_prefix,
        "debug": is_development(config),
    }
    app.state.templates = create_templates(paths, app.state.template_globals)

    logger.debug("Views configured", views=[str(path) for path in paths])


def render(
    request: Request,
    template: str,
    context: Optional[Mapping[str, Any]] = None,
    status_code: int = 200,
    templates: Optional[Jinja2Templates] = None,
) -> Response:
    """
    Render a template with the app's view settings.

    Args:
        request: Current request
        template: Template name, e.g. ``cookies.html``
        context: Template context
        status_code: Response status
        templates: Renderer to use instead of the app's shared one

    Returns:
        HTML template response
    """
    templates = templates or request.app.state.templates
    return templates.TemplateResponse(
        request,
        template,
        dict(context or {}),
        status_code=status_code,
    )
