"""Tests for correlation ID middleware."""

import logging

import pytest
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from middleware.correlation import (
    CORRELATION_ID_HEADER,
    REQUEST_ID_HEADER,
    CorrelationIdMiddleware,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from services.logging_config import JsonFormatter


class TestCorrelationIdContext:
    """Tests for correlation ID context functions."""

    def test_set_and_get(self):
        """Set and get correlation ID."""
        token = set_correlation_id("sync-run-42")
        try:
            assert get_correlation_id() == "sync-run-42"
        finally:
            reset_correlation_id(token)

    def test_reset_restores_previous_value(self):
        """Reset restores the previous correlation ID."""
        outer = set_correlation_id("outer")
        try:
            inner = set_correlation_id("inner")
            assert get_correlation_id() == "inner"
            reset_correlation_id(inner)
            assert get_correlation_id() == "outer"
        finally:
            reset_correlation_id(outer)


class TestCorrelationIdMiddleware:
    """Tests for CorrelationIdMiddleware."""

    @pytest.fixture
    def app(self):
        async def homepage(request):
            return JSONResponse({
                "correlation_id": get_correlation_id(),
                "request_state_id": getattr(request.state, "request_id", None),
            })

        app = Starlette(routes=[Route("/", homepage)])
        app.add_middleware(CorrelationIdMiddleware)
        return app

    @pytest.fixture
    def http(self, app):
        return TestClient(app)

    def test_generates_correlation_id(self, http):
        """Both headers are set to the same generated ID."""
        response = http.get("/")

        assert response.status_code == 200
        assert response.headers[CORRELATION_ID_HEADER] == response.headers[REQUEST_ID_HEADER]
        assert len(response.headers[CORRELATION_ID_HEADER]) == 36

    def test_uses_provided_correlation_id(self, http):
        """An incoming correlation ID is reused and visible to the handler."""
        response = http.get("/", headers={CORRELATION_ID_HEADER: "abc-123"})

        assert response.headers[CORRELATION_ID_HEADER] == "abc-123"
        assert response.json() == {"correlation_id": "abc-123", "request_state_id": "abc-123"}

    def test_falls_back_to_request_id_header(self, http):
        """X-Request-ID is used when X-Correlation-ID is absent."""
        response = http.get("/", headers={REQUEST_ID_HEADER: "req-9"})
        assert response.headers[CORRELATION_ID_HEADER] == "req-9"

    def test_custom_generator(self):
        """Middleware can use a custom ID generator."""
        counter = [0]

        def custom_generator():
            counter[0] += 1
            return f"custom-{counter[0]}"

        async def homepage(request):
            return JSONResponse({"id": get_correlation_id()})

        app = Starlette(routes=[Route("/", homepage)])
        app.add_middleware(CorrelationIdMiddleware, generator=custom_generator)
        http = TestClient(app)

        assert http.get("/").headers[CORRELATION_ID_HEADER] == "custom-1"
        assert http.get("/").headers[CORRELATION_ID_HEADER] == "custom-2"

    def test_practice_api_echoes_header(self, client):
        """The application echoes the correlation ID on API responses."""
        response = client.get("/api/v1/health", headers={CORRELATION_ID_HEADER: "health-check-1"})

        assert response.status_code == 200
        assert response.headers[CORRELATION_ID_HEADER] == "health-check-1"


class TestJsonFormatterRequestId:
    """JSON log lines carry the current correlation ID."""

    def test_record_gets_request_id(self):
        import json

        record = logging.LogRecord("practice", logging.INFO, "x.py", 1, "msg", None, None)
        token = set_correlation_id("log-ctx-1")
        try:
            line = JsonFormatter().format(record)
        finally:
            reset_correlation_id(token)
        assert json.loads(line)["request_id"] == "log-ctx-1"

    def test_no_id_outside_request(self):
        assert get_correlation_id() is None

    def test_json_line_without_request(self):
        import json

        record = logging.LogRecord("practice", logging.INFO, "x.py", 1, "msg", None, None)
        assert "request_id" not in json.loads(JsonFormatter().format(record))
