"""
Tests for console rendering.
"""

from __future__ import annotations

import json

from rich.console import Console

from report.table import build_table, format_percent, render_report, summary_lines
from tests.fakes import sample_report


def _console() -> Console:
    return Console(record=True, width=200, color_system=None)


class TestFormatting:
    """Tests for cell and summary formatting."""

    def test_format_percent(self):
        assert format_percent(0.0125) == "1.25%"
        assert format_percent(1.0) == "100.00%"

    def test_summary_lines(self):
        lines = summary_lines(sample_report())

        assert lines[0] == (
            'DEFINITION OF "USAGE": Instance had more than 3% CPU usage '
            "for more than 3% of the time over the last week"
        )
        assert "10 minutes window" in lines[1]
        assert "TOTAL INSTANCE COUNT: 1 (Disregarding 2 recently launched instances)" in lines
        assert "CURRENT MONTHLY COST: $74.00" in lines
        assert "CURRENT MONTHLY WASTE: $74.00 (5.99% of the last bill)" in lines
        assert "LAST AWS BILL: $1,234.50" in lines

    def test_table_rows(self):
        console = _console()
        console.print(build_table(sample_report()))
        text = console.export_text()

        assert "07/03/2025" in text
        assert "web-1" in text
        assert "i-abc123" in text
        assert "$72.00" in text
        assert "100 GiB ($2.00)" in text
        assert "2.0 kB/300 bytes" in text
        assert "$74.00" in text
        assert "1.25%" in text
        assert "true" in text

    def test_table_columns(self):
        table = build_table(sample_report([]))
        headers = [str(c.header) for c in table.columns]

        assert headers[0] == "LAUNCH DATE"
        assert headers[-1] == "IS WASTE"
        assert table.row_count == 0


class TestRenderReport:
    """Tests for the two output modes."""

    def test_table_output_includes_summary(self):
        console = _console()
        render_report(sample_report(), console)
        text = console.export_text()

        assert "NAME / INSTANCE ID" in text
        assert "LAST AWS BILL: $1,234.50" in text

    def test_json_output(self):
        console = _console()
        render_report(sample_report(), console, output="json")
        payload = json.loads(console.export_text())

        assert payload["instance_count"] == 1
        assert payload["excluded_recent_count"] == 2
        assert payload["total_monthly_cost"] == "$74.00"
        assert payload["waste_percent_of_bill"] == "5.99%"
        assert payload["instances"][0]["storage_cost"] == "$2.00"
        assert payload["instances"][0]["is_waste"] is True
