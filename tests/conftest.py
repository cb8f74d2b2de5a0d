"""
Shared fixtures.
"""

from __future__ import annotations

import pytest

from config.settings import Settings


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        AWS_ACCESS_KEY_ID="",
        AWS_SECRET_ACCESS_KEY="",
        AWS_DEFAULT_REGION="us-east-1",
        PRICING_REGION="us-east-1",
        CPU_USAGE_CRITERIA=3.0,
        OPERATING_SYSTEM="Linux",
        MAX_CONCURRENCY=4,
        REPORT_OUTPUT="table",
        LOG_LEVEL="WARNING",
    )
