"""
Unit tests for configuration loading and run metrics.
"""

import pytest

from autoinvoice.config import DEFAULT_GMAIL_QUERY, DEFAULT_INFERENCE_MODEL, Config
from autoinvoice.metrics import MetricsCollector

REQUIRED = {
    "DATABASE_URL": "postgresql://localhost/invoices",
    "S3_ENDPOINT": "https://s3.example.com",
    "S3_BUCKET": "invoice-files",
    "S3_PUBLIC_URL": "https://storage.example.com/invoice-files",
    "AWS_ACCESS_KEY_ID": "key",
    "AWS_SECRET_ACCESS_KEY": "secret",
    "GOOGLE_OAUTH2_CLIENT_ID": "client-id",
    "GOOGLE_OAUTH2_CLIENT_SECRET": "client-secret",
    "GOOGLE_OAUTH2_REDIRECT_URI": "http://localhost:3000/auth/google/callback",
    "OPENROUTER_API_KEY": "or-key",
    "SESSION_SECRET": "session-secret",
}

OPTIONAL = [
    "INFERENCE_API_URL",
    "INFERENCE_MODEL",
    "GMAIL_QUERY",
    "GMAIL_MAX_RESULTS",
    "RASTER_DPI",
    "FRONTEND_URL",
    "CORS_ORIGINS",
]


@pytest.fixture
def env(monkeypatch):
    for name in OPTIONAL:
        monkeypatch.delenv(name, raising=False)
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


class TestConfig:
    """Tests for Config.from_env"""

    def test_defaults(self, env):
        config = Config.from_env()

        assert config.database_url == "postgresql://localhost/invoices"
        assert config.inference_model == DEFAULT_INFERENCE_MODEL
        assert config.gmail_query == DEFAULT_GMAIL_QUERY
        assert config.gmail_max_results == 10
        assert config.raster_dpi == 150
        assert config.allowed_origins == ["http://localhost:5173"]

    def test_overrides(self, env):
        env.setenv("GMAIL_MAX_RESULTS", "25")
        env.setenv("FRONTEND_URL", "https://app.example.com")
        env.setenv("CORS_ORIGINS", "https://app.example.com, https://admin.example.com")

        config = Config.from_env()

        assert config.gmail_max_results == 25
        assert config.frontend_url == "https://app.example.com"
        assert config.allowed_origins == ["https://app.example.com", "https://admin.example.com"]

    def test_cors_defaults_to_frontend(self, env):
        env.setenv("FRONTEND_URL", "https://app.example.com")

        assert Config.from_env().allowed_origins == ["https://app.example.com"]

    def test_missing_variables_are_listed(self, env):
        env.delenv("DATABASE_URL")
        env.delenv("SESSION_SECRET")

        with pytest.raises(ValueError, match="DATABASE_URL, SESSION_SECRET"):
            Config.from_env()


class TestMetricsCollector:
    """Tests for MetricsCollector"""

    def test_stage_times_accumulate(self):
        collector = MetricsCollector()

        with collector.timed("upload"):
            pass
        first = collector.total("upload")
        with collector.timed("upload"):
            pass

        assert collector.total("upload") >= first >= 0

    def test_timer_stops_on_error(self):
        collector = MetricsCollector()

        with pytest.raises(RuntimeError):
            with collector.timed("extraction"):
                raise RuntimeError("boom")

        assert collector.total("extraction") >= 0
        assert collector.stop_timer("extraction") == 0.0

    def test_run_metrics(self):
        metrics = MetricsCollector().create_run_metrics(1.5)

        assert metrics.duration_sec == 1.5
        assert metrics.db_time_sec == 0.0
