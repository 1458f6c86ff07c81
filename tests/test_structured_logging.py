"""Tests for structured logging.

Tests:
- configure_logging sets up structlog with JSON/console renderers
- request_id context variable propagation
- job context binding through structlog contextvars
- RequestLoggingMiddleware adds and honours X-Request-ID
- No print() calls remain in production code
"""

import logging
import uuid
from unittest.mock import patch

import structlog

from ai_tagging.core.logging import (
    bind_job_context,
    clear_job_context,
    configure_logging,
    request_id_var,
)


class TestConfigureLogging:
    """Test structured logging configuration."""

    def test_configure_logging_sets_root_level(self):
        """configure_logging sets root logger level."""
        configure_logging(log_level="DEBUG", log_format="json")
        root = logging.getLogger()
        assert root.level == logging.DEBUG

        # Restore
        configure_logging(log_level="INFO", log_format="json")

    def test_configure_logging_console_format(self):
        """Console format configures without error."""
        configure_logging(log_level="INFO", log_format="console")
        root = logging.getLogger()
        assert len(root.handlers) > 0

        configure_logging(log_level="INFO", log_format="json")

    def test_noisy_loggers_suppressed(self):
        """Third-party loggers set to WARNING."""
        configure_logging(log_level="DEBUG", log_format="json")
        for name in ("httpx", "httpcore", "uvicorn.access", "watchfiles", "arq.jobs"):
            assert logging.getLogger(name).level == logging.WARNING

        configure_logging(log_level="INFO", log_format="json")


class TestRequestIdVar:
    """Test request_id context variable."""

    def test_request_id_default_none(self):
        """Default request_id is None."""
        token = request_id_var.set(None)
        assert request_id_var.get() is None
        request_id_var.reset(token)

    def test_request_id_set_get(self):
        """Can set and get request_id."""
        rid = str(uuid.uuid4())
        token = request_id_var.set(rid)
        assert request_id_var.get() == rid
        request_id_var.reset(token)


class TestJobContext:
    """Test job context binding."""

    def test_bind_and_clear(self):
        clear_job_context()
        bind_job_context(job_id="job-1", team_id="team-1", asset_id="asset-1")

        assert structlog.contextvars.get_contextvars() == {
            "job_id": "job-1",
            "team_id": "team-1",
            "asset_id": "asset-1",
        }

        clear_job_context()
        assert structlog.contextvars.get_contextvars() == {}


class TestRequestLoggingMiddleware:
    """Test request logging middleware via TestClient."""

    def test_response_has_request_id_header(self, client):
        """Every response includes X-Request-ID header."""
        response = client.get("/api/health")
        assert "X-Request-ID" in response.headers
        uuid.UUID(response.headers["X-Request-ID"])  # Raises if invalid

    def test_request_id_unique_per_request(self, client):
        """Each request gets a unique X-Request-ID."""
        r1 = client.get("/api/health")
        r2 = client.get("/api/health")
        assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]

    def test_incoming_request_id_is_echoed(self, client):
        response = client.get(
            "/api/tagging/review/stats",
            params={"team_id": "team-1"},
            headers={"X-Request-ID": "cron-run-7"},
        )
        assert response.headers["X-Request-ID"] == "cron-run-7"

    def test_api_request_is_logged_with_team(self, client):
        """Non-health requests produce an http_request log."""
        with patch("ai_tagging.middleware.request_logging.logger") as mock_logger:
            client.get("/api/tagging/review/stats", params={"team_id": "team-1"})

            mock_logger.info.assert_called_once()
            call_args = mock_logger.info.call_args
            assert call_args[0][0] == "http_request"
            assert call_args[1]["extra"]["status_code"] == 200
            assert call_args[1]["extra"]["team_id"] == "team-1"

    def test_health_is_not_logged(self, client):
        with patch("ai_tagging.middleware.request_logging.logger") as mock_logger:
            client.get("/api/health")

            mock_logger.info.assert_not_called()


class TestNoPrintStatements:
    """Verify no print() calls remain in production code."""

    def test_no_print_in_source(self):
        """No print() statements in ai_tagging source."""
        import pathlib

        source_dir = pathlib.Path(__file__).parent.parent / "ai_tagging"
        violations = []

        for py_file in source_dir.rglob("*.py"):
            content = py_file.read_text()
            for i, line in enumerate(content.splitlines(), 1):
                stripped = line.strip()
                if stripped.startswith("#"):
                    continue
                if "print(" in stripped:
                    violations.append(f"{py_file.relative_to(source_dir.parent)}:{i}: {stripped}")

        assert violations == [], "Found print() statements:\n" + "\n".join(violations)
