"""
Centralized settings reader for the idle instance report.

Reads all configuration from environment variables (loaded from .env file).
The entry point builds one `Settings` per run; everything below it receives
that instance explicitly:

    from config.settings import Settings
    print(Settings().CPU_USAGE_CRITERIA)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)


def _env(key: str, default: str = "") -> str:
    """Read an environment variable with an optional default."""
    return os.getenv(key, default)


@dataclass(frozen=True)
class Settings:
    """Immutable application settings populated from environment variables."""

    # ── AWS ─────────────────────────────────────────────
    AWS_ACCESS_KEY_ID: str = field(default_factory=lambda: _env("AWS_ACCESS_KEY_ID"))
    AWS_SECRET_ACCESS_KEY: str = field(default_factory=lambda: _env("AWS_SECRET_ACCESS_KEY"))
    AWS_DEFAULT_REGION: str = field(default_factory=lambda: _env("AWS_DEFAULT_REGION", "us-east-1"))

    # The Price List API is only served from a few regions
    PRICING_REGION: str = field(default_factory=lambda: _env("PRICING_REGION", "us-east-1"))

    # ── Classification ──────────────────────────────────
    # CPU percentage above which a 10-minute window counts as "in use"
    CPU_USAGE_CRITERIA: float = field(default_factory=lambda: float(_env("CPU_USAGE_CRITERIA", "3")))
    OPERATING_SYSTEM: str = field(default_factory=lambda: _env("OPERATING_SYSTEM", "Linux"))

    # ── Runtime ─────────────────────────────────────────
    MAX_CONCURRENCY: int = field(default_factory=lambda: int(_env("MAX_CONCURRENCY", "8")))
    REPORT_OUTPUT: str = field(default_factory=lambda: _env("REPORT_OUTPUT", "table").lower())
    LOG_LEVEL: str = field(default_factory=lambda: _env("LOG_LEVEL", "WARNING").upper())

    def __post_init__(self) -> None:
        if self.CPU_USAGE_CRITERIA < 0:
            raise ValueError(f"CPU_USAGE_CRITERIA must be >= 0, got {self.CPU_USAGE_CRITERIA}")
        if self.MAX_CONCURRENCY < 1:
            raise ValueError(f"MAX_CONCURRENCY must be >= 1, got {self.MAX_CONCURRENCY}")
        if self.REPORT_OUTPUT not in ("table", "json"):
            raise ValueError(f"REPORT_OUTPUT must be 'table' or 'json', got {self.REPORT_OUTPUT!r}")

