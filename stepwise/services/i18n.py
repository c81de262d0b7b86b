"""
Translation resources with an explicit readiness signal.

Resources live at ``<directory>/<language>/<namespace>.json``. Loading
starts in a background thread as soon as the translator is constructed;
pages that need translated content wait for readiness, bounded by a
timeout, before they render.
"""

import asyncio
import json
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from stepwise.core.exceptions import TranslationsLoadError, TranslationsTimeoutError
from stepwise.core.logging import get_logger, log_performance

logger = get_logger(__name__)


class Translator:
    """
    Loads translation resources and looks up dotted keys.

    Attributes:
        directory: Root directory of the translation resources
        languages: Languages loaded
        default_language: Language used when a key is missing
        namespace: Resource file name without extension
    """

    def __init__(
        self,
        directory: Union[str, Path],
        languages: Iterable[str] = ("en",),
        default_language: str = "en",
        namespace: str = "default",
        autoload: bool = True,
    ):
        """
        Initialize the translator.

        Args:
            directory: Root directory of the translation resources
            languages: Languages to load
            default_language: Fallback language for missing keys
            namespace: Resource file name without extension
            autoload: Start loading in a background thread immediately
        """
        self.directory = Path(directory)
        self.languages = list(languages)
        if default_language not in self.languages:
            self.languages.append(default_language)
        self.default_language = default_language
        self.namespace = namespace

        self._resources: dict[str, dict[str, Any]] = {}
        self._ready = threading.Event()
        self._error: Optional[Exception] = None
        self._loader: Optional[threading.Thread] = None

        if autoload:
            self.load(background=True)

    def resource_path(self, language: str) -> Path:
        return self.directory / language / f"{self.namespace}.json"

    def load(self, background: bool = False) -> None:
        """
        Load every language resource.

        Args:
            background: Load in a daemon thread instead of blocking
        """
        if background:
            self._loader = threading.Thread(
                target=self._load, name="stepwise-translations", daemon=True
            )
            self._loader.start()
        else:
            self._load()

    def _read(self, language: str) -> dict[str, Any]:
        path = self.resource_path(language)
        if not path.is_file():
            logger.debug("Translation resource missing", path=str(path))
            return {}
        with path.open(encoding="utf-8") as handle:
            return json.load(handle)

    def _load(self) -> None:
        try:
            with log_performance(
                logger, "translations_load", directory=str(self.directory)
            ):
                resources = {lang: self._read(lang) for lang in self.languages}
        except (OSError, ValueError) as e:
            logger.error(
                "Failed to load translations",
                directory=str(self.directory),
                error=str(e),
                error_type=type(e).__name__,
            )
            self._error = e
        else:
            self._resources = resources
        finally:
            self._ready.set()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set() and self._error is None

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until loading has finished.

        Args:
            timeout: Seconds to wait, None waits indefinitely

        Returns:
            True when translations loaded, False on timeout

        Raises:
            TranslationsLoadError: If loading failed
        """
        finished = self._ready.wait(timeout)
        if finished and self._error is not None:
            raise TranslationsLoadError(
                "Translations could not be loaded",
                directory=str(self.directory),
            ) from self._error
        return finished

    async def ready(self, timeout: Optional[float] = None) -> None:
        """
        Wait for translations without blocking the event loop.

        Raises:
            TranslationsTimeoutError: If loading did not finish in time
            TranslationsLoadError: If loading failed
        """
        if not self._ready.is_set():
            finished = await asyncio.to_thread(self._ready.wait, timeout)
            if not finished:
                raise TranslationsTimeoutError(
                    "Translations were not ready in time",
                    timeout=timeout,
                )
        self.wait_until_ready(0)

    def _lookup(self, language: str, key: str) -> Any:
        node: Any = self._resources.get(language, {})
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return None
            node = node[part]
        return node

    def translate(
        self,
        key: str,
        lang: Optional[str] = None,
        default: Any = None,
    ) -> Any:
        """
        Look up a dotted key.

        Args:
            key: Dotted key, e.g. ``pages.name.header``
            lang: Language, defaults to the default language
            default: Value returned when the key is missing everywhere

        Returns:
            The translated string or nested mapping, else ``default``, else
            the key itself
        """
        for language in (lang or self.default_language, self.default_language):
            value = self._lookup(language, key)
            if value is not None:
                return value
        return key if default is None else default

    __call__ = translate
