"""Tests for log level and renderer selection from settings."""

import structlog
from bakery.utils.logging import get_log_level, setup_structlog


class TestLogLevel:
    def test_level_follows_environment(self, settings):
        settings(ENVIRONMENT="production")
        assert get_log_level() == "INFO"

        settings(ENVIRONMENT="development")
        assert get_log_level() == "DEBUG"

    def test_explicit_level_wins(self, settings):
        settings(ENVIRONMENT="production", LOG_LEVEL="error")
        assert get_log_level() == "ERROR"


class TestRenderer:
    def test_production_renders_json(self, settings):
        settings(ENVIRONMENT="production")
        setup_structlog()
        try:
            processors = structlog.get_config()["processors"]
            assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        finally:
            settings(ENVIRONMENT="test")
            setup_structlog()
