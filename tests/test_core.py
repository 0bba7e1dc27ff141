"""Tests for logging, metrics, Sentry bootstrap and the error taxonomy."""

import json
import logging

from app.core.exceptions import ProviderParseError, ProviderTimeout, QuotaExceeded
from app.core.logging import JSONFormatter, setup_logging
from app.core.metrics import metrics_payload
from app.core.sentry import init_sentry, scrub_event
from app.gateway.types import OutcomeKind


class TestJSONFormatter:
    def test_context_fields_are_included(self):
        record = logging.LogRecord("app.gateway.dispatcher", logging.WARNING, __file__, 1, "Candidate %s failed", ("m1",), None)
        record.provider = "openrouter"
        record.model = "m1"
        record.outcome = "timeout"

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Candidate m1 failed"
        assert data["level"] == "WARNING"
        assert data["provider"] == "openrouter"
        assert data["outcome"] == "timeout"
        assert "user_id" not in data

    def test_setup_logging_installs_single_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        setup_logging(level="debug", json_logs=True)
        try:
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)


class TestMetrics:
    def test_payload_lists_generation_metrics(self):
        body, content_type = metrics_payload()
        text = body.decode()

        assert content_type.startswith("text/plain")
        assert "generation_exhausted_total" in text
        assert "generation_quota_rejections_total" in text


class TestSentry:
    def test_disabled_without_dsn(self):
        assert init_sentry() is False

    def test_scrub_removes_credentials(self):
        event = {
            "request": {"headers": {"Authorization": "Bearer sk-or-123", "Accept": "application/json"}},
            "breadcrumbs": {"values": [{"category": "httpx", "data": {"authorization": "Bearer sk-tg-456"}}]},
        }

        scrubbed = scrub_event(event)

        assert scrubbed["request"]["headers"]["Authorization"] == "[Filtered]"
        assert scrubbed["request"]["headers"]["Accept"] == "application/json"
        assert scrubbed["breadcrumbs"]["values"][0]["data"]["authorization"] == "[Filtered]"


class TestExceptions:
    def test_provider_error_kinds(self):
        assert ProviderTimeout("slow").kind == OutcomeKind.TIMEOUT
        assert ProviderParseError("empty").kind == OutcomeKind.PARSE_ERROR

    def test_quota_exceeded_message(self):
        e = QuotaExceeded(plan="free", feature="ai_uses", used=10, limit=10)
        assert e.remaining == 0
        assert "10" in str(e)
        assert "free" in str(e)
