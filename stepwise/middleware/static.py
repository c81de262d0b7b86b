"""Static asset serving for the service and its theme."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from starlette.staticfiles import StaticFiles

from stepwise.core.logging import get_logger

logger = get_logger(__name__)


def asset_directories(config: Mapping[str, Any]) -> list[Path]:
    """Existing asset directories, service assets first."""
    directories = [(Path(config["root"]) / config["assets"]).resolve()]
    theme = config.get("theme")
    if theme is not None and getattr(theme, "assets", None) is not None:
        directories.append(Path(theme.assets).resolve())
    return [directory for directory in directories if directory.is_dir()]


class LayeredStaticFiles(StaticFiles):
    """StaticFiles searching several directories in order."""

    def __init__(self, directories: list[Path]):
        super().__init__(directory=None, check_dir=False)
        self.all_directories = [str(directory) for directory in directories]


def serve_static(app: FastAPI, config: Mapping[str, Any]) -> None:
    """
    Mount asset directories under the configured prefix.

    Args:
        app: Application being assembled
        config: Effective configuration with a resolved theme
    """
    directories = asset_directories(config)
    if not directories:
        logger.debug("No static asset directories found")
        return

    prefix = "/" + config["static_prefix"].strip("/")
    app.mount(prefix, LayeredStaticFiles(directories), name="static")
    logger.debug(
        "Static assets mounted",
        prefix=prefix,
        directories=[str(directory) for directory in directories],
    )
