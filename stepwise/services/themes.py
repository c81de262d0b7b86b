"""
Theme registry.

Themes contribute view templates and static assets. Configuration refers to
a theme by name, by a mapping of directories or by an object exposing
``views`` and ``assets``. Names are resolved through a registry of
factories while the app is assembled, so an unknown theme fails before
anything listens.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from stepwise.core.exceptions import ConfigurationError, UnknownThemeError
from stepwise.core.logging import get_logger

logger = get_logger(__name__)

THEMES_DIR = Path(__file__).resolve().parent.parent / "themes"


@dataclass(frozen=True)
class Theme:
    """View and asset directories provided by a theme."""

    name: str
    views: Optional[Path] = None
    assets: Optional[Path] = None


ThemeFactory = Callable[[], Theme]


class ThemeRegistry:
    """Maps theme names to factories."""

    def __init__(self) -> None:
        self._factories: dict[str, ThemeFactory] = {}

    def register(self, name: str, factory: ThemeFactory) -> None:
        """
        Register a theme factory.

        Args:
            name: Theme name used in configuration
            factory: Callable returning the Theme
        """
        self._factories[name] = factory
        logger.debug("Theme registered", theme=name)

    def names(self) -> list[str]:
        return sorted(self._factories)

    def resolve(self, theme: Any) -> Any:
        """
        Resolve a configured theme.

        Args:
            theme: Theme name, a mapping of ``name``/``views``/``assets``,
                or an object exposing ``views`` or ``assets``

        Returns:
            The Theme instance, or the object itself

        Raises:
            UnknownThemeError: If the name is not registered
            ConfigurationError: If the theme cannot be interpreted
        """
        if isinstance(theme, Theme):
            return theme
        if isinstance(theme, str):
            return self._lookup(theme)
        if isinstance(theme, Mapping):
            return theme_from_mapping(theme)
        if hasattr(theme, "views") or hasattr(theme, "assets"):
            return theme
        raise ConfigurationError(
            "Theme must be a name, a mapping or an object with views or assets",
            theme=repr(theme),
        )

    def _lookup(self, name: str) -> Theme:
        try:
            factory = self._factories[name]
        except KeyError:
            raise UnknownThemeError(
                f"Unknown theme '{name}'",
                theme=name,
                available=self.names(),
            ) from None
        return factory()


def theme_from_mapping(theme: Mapping[str, Any]) -> Theme:
    """
    Build a Theme from a mapping.

    Raises:
        ConfigurationError: If the mapping has keys other than ``name``,
            ``views`` and ``assets``
    """
    unknown = sorted(set(theme) - {"name", "views", "assets"})
    if unknown:
        raise ConfigurationError(
            f"Unknown theme options: {', '.join(map(str, unknown))}",
            options=unknown,
        )
    views, assets = theme.get("views"), theme.get("assets")
    return Theme(
        name=str(theme.get("name", "custom")),
        views=Path(views) if views is not None else None,
        assets=Path(assets) if assets is not None else None,
    )


def default_theme() -> Theme:
    base = THEMES_DIR / "default"
    return Theme(name="default", views=base / "views", assets=base / "assets")


registry = ThemeRegistry()
registry.register("default", default_theme)


def register_theme(name: str, factory: ThemeFactory) -> None:
    """Register a theme on the module-level registry."""
    registry.register(name, factory)


def resolve_theme(theme: Any) -> Any:
    """Resolve a theme through the module-level registry."""
    return registry.resolve(theme)
