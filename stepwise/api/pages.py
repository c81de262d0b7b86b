"""
Cookie and terms pages.

Both pages render translated content, so they wait for the translator to
become ready before responding.
"""

from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from stepwise.middleware.settings import render

COOKIES_PATH = "/cookies"
TERMS_PATH = "/terms-and-conditions"


def page_context(content: Any) -> dict[str, Any]:
    context: dict[str, Any] = {"content": content}
    if isinstance(content, Mapping):
        context.update(content)
    return context


def translated_page(template: str, key: str):
    """Create a handler rendering ``template`` with the ``key`` translations."""

    async def handler(request: Request):
        translator = request.app.state.translator
        await translator.ready(request.app.state.config["translations_timeout"])
        return render(request, template, page_context(translator.translate(key)))

    return handler


def enabled_paths(config: Mapping[str, Any]) -> list[str]:
    """Paths of the pages enabled by ``get_cookies`` and ``get_terms``."""
    paths = []
    if config.get("get_cookies") is True:
        paths.append(COOKIES_PATH)
    if config.get("get_terms") is True:
        paths.append(TERMS_PATH)
    return paths


def create_router(config: Mapping[str, Any]) -> APIRouter:
    """
    Create the router for the enabled informational pages.

    Args:
        config: Effective configuration

    Returns:
        Router with ``/cookies`` and/or ``/terms-and-conditions``
    """
    router = APIRouter(tags=["Pages"])
    if config.get("get_cookies") is True:
        router.add_api_route(
            COOKIES_PATH,
            translated_page("cookies.html", "cookies"),
            methods=["GET"],
            response_class=HTMLResponse,
            name="cookies",
        )
    if config.get("get_terms") is True:
        router.add_api_route(
            TERMS_PATH,
            translated_page("terms.html", "terms"),
            methods=["GET"],
            response_class=HTMLResponse,
            name="terms",
        )
    return router
