"""
Pytest configuration and shared test fixtures.

Provides a configuration provider isolated from the process-wide one, a
translations directory, sample route definitions and factories for
assembled apps and test clients.
"""

import json
from pathlib import Path
from typing import Any, Callable, Generator

import pytest
from fastapi.testclient import TestClient

from stepwise.core.config import ConfigProvider, Settings, get_provider, get_settings
from stepwise.main import Bootstrap, bootstrap

TRANSLATIONS = {
    "cookies": {
        "header": "Cookies on this service",
        "intro": "We use cookies to keep track of your answers.",
        "items": [{"title": "Session cookie", "text": "Stores your progress."}],
    },
    "terms": {
        "header": "Our terms",
        "paragraphs": ["Use this service responsibly."],
    },
    "errors": {
        "404": {"title": "Page not found", "message": "Check the address."},
        "default": {"title": "Service error", "message": "Try again later."},
        "cookies-required": {
            "title": "Cookies are off",
            "message": "Turn on cookies to use this service.",
        },
        "unavailable": {"title": "Service unavailable", "message": "Try again."},
    },
    "pages": {
        "name": {"header": "What is your name?"},
        "age": {"header": "How old are you?"},
    },
    "fields": {"name": {"label": "Full name"}},
    "validation": {"required": "Enter a value", "numeric": "Enter a number"},
}

ROUTES = [
    {
        "name": "apply",
        "base_url": "/apply",
        "fields": {
            "name": {"validate": ["required"]},
            "age": {"validate": ["required", "numeric"]},
        },
        "steps": {
            "/name": {"fields": ["name"], "next": "/age"},
            "/age": {"fields": ["age"], "next": "/done"},
            "/done": {},
        },
    }
]


@pytest.fixture(autouse=True)
def isolate_process_config() -> Generator[None, None, None]:
    """Reset the cached process-wide settings and provider around each test."""
    get_settings.cache_clear()
    get_provider.cache_clear()
    yield
    get_settings.cache_clear()
    get_provider.cache_clear()


@pytest.fixture
def root_dir(tmp_path: Path) -> Path:
    """
    Service root with translations and a static asset.

    Returns:
        Path of the root directory
    """
    resource = tmp_path / "translations" / "en" / "default.json"
    resource.parent.mkdir(parents=True)
    resource.write_text(json.dumps(TRANSLATIONS), encoding="utf-8")

    public = tmp_path / "public" / "js"
    public.mkdir(parents=True)
    (public / "app.js").write_text("console.log('ok');", encoding="utf-8")
    return tmp_path


@pytest.fixture
def provider(root_dir: Path) -> ConfigProvider:
    """
    Configuration provider with quiet, non-listening defaults.

    Returns:
        ConfigProvider isolated from the process-wide provider
    """
    settings = Settings(env="test", start=False, root=str(root_dir))
    return ConfigProvider(settings.model_dump())


@pytest.fixture
def routes() -> list[dict[str, Any]]:
    return json.loads(json.dumps(ROUTES))


@pytest.fixture
def make_app(provider: ConfigProvider, routes) -> Callable[..., Bootstrap]:
    """
    Factory assembling an app with the sample routes.

    Example:
        def test_something(make_app):
            instance = make_app(get_terms=False)
    """

    def factory(**options: Any) -> Bootstrap:
        options.setdefault("routes", routes)
        instance = bootstrap(options, provider=provider)
        instance.translator.wait_until_ready(5)
        return instance

    return factory


@pytest.fixture
def instance(make_app) -> Bootstrap:
    return make_app()


@pytest.fixture
def test_client(instance: Bootstrap) -> Generator[TestClient, None, None]:
    """
    Synchronous test client for the assembled app.

    Yields:
        TestClient bound to ``instance.app``
    """
    with TestClient(instance.app) as client:
        yield client
