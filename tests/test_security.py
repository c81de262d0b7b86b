"""
Test suite for security response headers.
"""

from fastapi import status
from fastapi.testclient import TestClient

from stepwise.core.security import (
    BASE_HEADERS,
    HSTS_HEADER,
    build_csp_header,
    get_security_headers,
)


class TestSecurityHeaders:
    """Test suite for header construction."""

    def test_csp_header_value(self):
        assert build_csp_header() == (
            "default-src 'none'; style-src 'self'; img-src 'self'; "
            "font-src 'self' data:; script-src 'self' 'unsafe-inline'"
        )

    def test_hsts_only_for_https(self):
        assert "Strict-Transport-Security" not in get_security_headers(
            {"protocol": "http"}
        )
        headers = get_security_headers({"protocol": "https"})
        assert headers["Strict-Transport-Security"] == HSTS_HEADER

    def test_headers_on_every_response(self, test_client: TestClient):
        response = test_client.get("/healthz/ping")

        assert response.status_code == status.HTTP_200_OK
        for header, value in BASE_HEADERS.items():
            assert response.headers[header] == value
        assert response.headers["Content-Security-Policy"] == build_csp_header()

    def test_headers_on_not_found(self, test_client: TestClient):
        response = test_client.get("/missing")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_headers_on_cookie_redirect(self, test_client: TestClient):
        response = test_client.get("/apply/name", follow_redirects=False)

        assert response.status_code == status.HTTP_302_FOUND
        assert "Content-Security-Policy" in response.headers
