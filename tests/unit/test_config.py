"""Tests for application and engine configuration."""

from decimal import Decimal

from riskgate.config import Settings
from riskgate.fraud.config import FraudConfig, default_config


class TestSettings:
    def test_default_settings(self):
        settings = Settings()
        assert settings.app_name == "riskgate"
        assert settings.app_version == "0.1.0"
        assert settings.log_json is True

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_NAME", "test-app")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("DEBUG", "true")
        settings = Settings()
        assert settings.app_name == "test-app"
        assert settings.log_level == "DEBUG"
        assert settings.debug is True

    def test_database_url_default(self):
        settings = Settings()
        assert "postgresql+asyncpg" in settings.database_url

    def test_audit_topic(self):
        assert Settings().audit_kafka_topic == "riskgate.fraud.assessments"


class TestFraudConfig:
    def test_defaults(self):
        config = FraudConfig()
        assert config.velocity.high_frequency_count == 5
        assert config.amount.reporting_threshold == Decimal("10000")
        assert config.amount.structuring_floor == Decimal("9500")
        assert config.behavioral.local_timezone == "UTC"
        assert config.decision.block_from == 80
        assert config.engine.parallel_detectors is True
        assert config.engine.timeout_seconds is None

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("FRAUD_HIGH_FREQUENCY_COUNT", "8")
        monkeypatch.setenv("FRAUD_LARGE_TXN_OVER", "75000")
        monkeypatch.setenv("FRAUD_LOCAL_TIMEZONE", "America/Port-au-Prince")
        monkeypatch.setenv("FRAUD_BLOCK_FROM", "90")
        monkeypatch.setenv("FRAUD_PARALLEL_DETECTORS", "false")
        monkeypatch.setenv("FRAUD_TIMEOUT_SECONDS", "0.25")
        monkeypatch.setenv("FRAUD_AUDIT_MAX_ATTEMPTS", "5")

        config = FraudConfig.from_env()

        assert config.velocity.high_frequency_count == 8
        assert config.amount.large_txn_over == Decimal("75000")
        assert config.behavioral.local_timezone == "America/Port-au-Prince"
        assert config.decision.block_from == 90
        assert config.engine.parallel_detectors is False
        assert config.engine.timeout_seconds == 0.25
        assert config.audit.max_attempts == 5

    def test_from_env_leaves_default_untouched(self, monkeypatch):
        monkeypatch.setenv("FRAUD_DAILY_LIMIT", "1")
        FraudConfig.from_env()
        assert default_config.amount.daily_limit == Decimal("100000")
