"""
Tests for environment-driven settings.
"""

from __future__ import annotations

import pytest

from config.settings import Settings

_KEYS = (
    "AWS_DEFAULT_REGION",
    "PRICING_REGION",
    "CPU_USAGE_CRITERIA",
    "OPERATING_SYSTEM",
    "MAX_CONCURRENCY",
    "REPORT_OUTPUT",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestSettings:
    """Tests for defaults, overrides and validation."""

    def test_defaults(self, clean_env):
        s = Settings()

        assert s.AWS_DEFAULT_REGION == "us-east-1"
        assert s.PRICING_REGION == "us-east-1"
        assert s.CPU_USAGE_CRITERIA == 3.0
        assert s.OPERATING_SYSTEM == "Linux"
        assert s.MAX_CONCURRENCY == 8
        assert s.REPORT_OUTPUT == "table"
        assert s.LOG_LEVEL == "WARNING"

    def test_overrides_from_environment(self, clean_env):
        clean_env.setenv("AWS_DEFAULT_REGION", "eu-west-1")
        clean_env.setenv("CPU_USAGE_CRITERIA", "7.5")
        clean_env.setenv("MAX_CONCURRENCY", "2")
        clean_env.setenv("REPORT_OUTPUT", "JSON")
        clean_env.setenv("LOG_LEVEL", "debug")

        s = Settings()

        assert s.AWS_DEFAULT_REGION == "eu-west-1"
        assert s.CPU_USAGE_CRITERIA == 7.5
        assert s.MAX_CONCURRENCY == 2
        assert s.REPORT_OUTPUT == "json"
        assert s.LOG_LEVEL == "DEBUG"

    def test_settings_are_frozen(self, test_settings):
        with pytest.raises(AttributeError):
            test_settings.MAX_CONCURRENCY = 1

    def test_negative_usage_criteria_rejected(self, clean_env):
        clean_env.setenv("CPU_USAGE_CRITERIA", "-1")
        with pytest.raises(ValueError, match="CPU_USAGE_CRITERIA"):
            Settings()

    def test_zero_concurrency_rejected(self, clean_env):
        clean_env.setenv("MAX_CONCURRENCY", "0")
        with pytest.raises(ValueError, match="MAX_CONCURRENCY"):
            Settings()

    def test_unknown_output_rejected(self, clean_env):
        clean_env.setenv("REPORT_OUTPUT", "csv")
        with pytest.raises(ValueError, match="REPORT_OUTPUT"):
            Settings()
