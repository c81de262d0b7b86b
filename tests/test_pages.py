"""
Test suite for the cookie and terms pages and their readiness gating.
"""

import threading

from fastapi import status
from fastapi.testclient import TestClient

from stepwise.services.i18n import Translator


def gate_translations(instance, root_dir) -> Translator:
    """Swap in a translator that has not loaded yet."""
    translator = Translator(root_dir / "translations", autoload=False)
    instance.app.state.translator = translator
    return translator


class TestInformationalPages:
    """Test suite for enabled and disabled pages."""

    def test_cookies_page_renders_translations(self, test_client: TestClient):
        response = test_client.get("/cookies")

        assert response.status_code == status.HTTP_200_OK
        assert "Cookies on this service" in response.text
        assert "Session cookie" in response.text

    def test_terms_page_renders_translations(self, test_client: TestClient):
        response = test_client.get("/terms-and-conditions")

        assert response.status_code == status.HTTP_200_OK
        assert "Our terms" in response.text
        assert "Use this service responsibly." in response.text

    def test_disabled_pages_are_not_found(self, make_app):
        instance = make_app(get_cookies=False, get_terms=False)

        with TestClient(instance.app) as client:
            cookies = client.get("/cookies")
            terms = client.get("/terms-and-conditions")

        assert cookies.status_code == status.HTTP_404_NOT_FOUND
        assert terms.status_code == status.HTTP_404_NOT_FOUND

    def test_pages_only_enabled_by_true(self, make_app):
        instance = make_app(get_cookies="yes")

        with TestClient(instance.app) as client:
            response = client.get("/cookies")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_missing_translations_fall_back_to_defaults(self, make_app):
        instance = make_app(translations="nowhere")

        with TestClient(instance.app) as client:
            response = client.get("/cookies")

        assert response.status_code == status.HTTP_200_OK
        assert "<h1>Cookies</h1>" in response.text

    def test_security_headers_on_pages(self, test_client: TestClient):
        response = test_client.get("/cookies")

        assert "default-src 'none'" in response.headers["content-security-policy"]


class TestReadinessGating:
    """Test suite for pages waiting on translations."""

    def test_request_before_ready_renders_once_loaded(self, instance, root_dir):
        translator = gate_translations(instance, root_dir)
        timer = threading.Timer(0.2, translator.load)

        with TestClient(instance.app) as client:
            client.cookies.set("seen", "1")
            assert not translator.is_ready
            timer.start()
            response = client.get("/cookies")

        assert translator.is_ready
        assert response.status_code == status.HTTP_200_OK
        assert "Cookies on this service" in response.text

    def test_translations_never_ready_times_out(self, make_app, root_dir):
        instance = make_app(translations_timeout=0.1)
        gate_translations(instance, root_dir)

        with TestClient(instance.app) as client:
            client.cookies.set("seen", "1")
            response = client.get("/terms-and-conditions")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert "Something went wrong" in response.text

    def test_translation_load_failure_renders_error(self, make_app, root_dir):
        broken = root_dir / "broken" / "en" / "default.json"
        broken.parent.mkdir(parents=True)
        broken.write_text("{not json", encoding="utf-8")
        instance = make_app()
        translator = Translator(root_dir / "broken", autoload=False)
        translator.load()
        instance.app.state.translator = translator

        with TestClient(instance.app) as client:
            client.cookies.set("seen", "1")
            response = client.get("/cookies")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
