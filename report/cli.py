"""
Entry point for the idle instance report.

Lists running EC2 instances, prices them, classifies the idle ones and
prints the report. Any failure aborts the run with a single ``ERROR:`` line;
no partial table is printed.

Usage
-----
    python -m report.cli
    idle-report
"""

from __future__ import annotations

import asyncio
import logging
import sys

from rich.console import Console

from config.settings import Settings
from detect.aggregator import generate_report
from ingest.aws import AwsCollaborator
from report.table import render_report

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    for noisy in ("botocore", "boto3", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def run(settings: Settings, console: Console) -> int:
    """Generate and print one report. Returns the process exit code."""
    if settings.REPORT_OUTPUT == "table":
        console.print("IDLE INSTANCE IDENTIFICATOR REPORT")
        console.print("Report generation can take a few minutes, please wait...")

    try:
        with console.status("Collecting instances, metrics and prices..."):
            report = asyncio.run(generate_report(AwsCollaborator(settings), settings))
    except Exception as exc:
        logger.debug("Report generation failed", exc_info=True)
        console.print(f"ERROR: {exc}", style="bold red", highlight=False)
        return 1

    render_report(report, console, settings.REPORT_OUTPUT)
    return 0


def main() -> int:
    console = Console()
    try:
        settings = Settings()
    except ValueError as exc:
        console.print(f"ERROR: invalid configuration: {exc}", style="bold red", highlight=False)
        return 1

    configure_logging(settings.LOG_LEVEL)
    return run(settings, console)


if __name__ == "__main__":
    sys.exit(main())
