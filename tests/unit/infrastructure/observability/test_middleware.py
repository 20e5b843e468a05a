"""Tests for the request logging middleware."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from mushee.infrastructure.observability.logging import get_correlation_id
from mushee.infrastructure.observability.middleware import (
    CORRELATION_HEADER,
    RequestLoggingMiddleware,
)


class TestRequestLoggingMiddleware:
    """Test RequestLoggingMiddleware."""

    @pytest.fixture
    def app(self) -> FastAPI:
        """Create test FastAPI app."""
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/test")
        async def test_endpoint() -> dict[str, str]:
            return {"correlation_id": get_correlation_id()}

        @app.get("/missing")
        async def missing_endpoint() -> None:
            raise HTTPException(status_code=404, detail="nope")

        return app

    @pytest.fixture
    def client(self, app: FastAPI) -> TestClient:
        """Create test client."""
        return TestClient(app)

    def test_generates_correlation_id(self, client: TestClient) -> None:
        """Test that a correlation ID is generated and echoed back."""
        response = client.get("/test")

        assert response.status_code == 200
        assert response.headers[CORRELATION_HEADER]
        assert response.json()["correlation_id"] == response.headers[CORRELATION_HEADER]

    def test_adopts_incoming_correlation_id(self, client: TestClient) -> None:
        """Test that a caller-provided ID is reused."""
        response = client.get("/test", headers={CORRELATION_HEADER: "trace-me"})

        assert response.headers[CORRELATION_HEADER] == "trace-me"
        assert response.json()["correlation_id"] == "trace-me"

    def test_logs_request_and_response(self, client: TestClient) -> None:
        """Test that both request and response are logged."""
        with patch("mushee.infrastructure.observability.middleware.logger") as mock_logger:
            client.get("/test")

        messages = [call.args[0] for call in mock_logger.info.call_args_list]
        assert messages[0] == "→ GET /test"
        assert messages[1].startswith("✓ GET /test → 200")

    def test_marks_error_responses(self, client: TestClient) -> None:
        """Test that 4xx responses are logged with the failure marker."""
        with patch("mushee.infrastructure.observability.middleware.logger") as mock_logger:
            client.get("/missing")

        final = mock_logger.info.call_args_list[-1]
        assert final.args[0].startswith("✗ GET /missing → 404")
        assert final.kwargs["extra"]["status_code"] == 404
