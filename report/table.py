"""
Console rendering of the idle instance report.

Builds a rich table with one row per instance followed by the definitions
and portfolio summary lines.
"""

from __future__ import annotations

import json

from rich import box
from rich.console import Console
from rich.filesize import decimal as format_bytes
from rich.table import Table

from detect.models import EvaluatedInstance, Report
from detect.utilization import METRIC_PERIOD_SECONDS

_COLUMNS = (
    "LAUNCH DATE",
    "NAME / INSTANCE ID",
    "TYPE",
    "INSTANCE COST",
    "STORAGE",
    "NETWORKING (IN/OUT)",
    "TOTAL COST",
    "USAGE (%)",
    "IS WASTE",
)


def format_percent(ratio: float) -> str:
    return f"{ratio * 100:.2f}%"


def _row(instance: EvaluatedInstance) -> list[str]:
    return [
        instance.launch_time.strftime("%d/%m/%Y"),
        f"{instance.name}\n{instance.instance_id}",
        instance.instance_type,
        instance.instance_cost.format(2),
        f"{instance.storage_size_total} GiB ({instance.storage_cost.format(2)})",
        f"{format_bytes(int(instance.average_bytes_in))}/{format_bytes(int(instance.average_bytes_out))}",
        instance.monthly_cost.format(2),
        format_percent(instance.peak_usage_ratio),
        "[red]true[/red]" if instance.is_waste else "false",
    ]


def build_table(report: Report) -> Table:
    """One row per retained instance, oldest first."""
    table = Table(box=box.SQUARE, show_lines=True)
    for column in _COLUMNS:
        justify = "right" if "COST" in column or column == "USAGE (%)" else "left"
        table.add_column(column, justify=justify)

    for instance in report.instances:
        table.add_row(*_row(instance))
    return table


def summary_lines(report: Report) -> list[str]:
    """Definitions and portfolio totals printed under the table."""
    window_minutes = METRIC_PERIOD_SECONDS // 60
    return [
        (
            f'DEFINITION OF "USAGE": Instance had more than {report.cpu_usage_criteria:g}% CPU usage '
            f"for more than {report.waste_ratio_threshold * 100:g}% of the time over the last week"
        ),
        (
            f'DEFINITION OF "NETWORK": Average number of bytes in transit on a {window_minutes} minutes '
            "window for the last week"
        ),
        "",
        (
            f"TOTAL INSTANCE COUNT: {len(report.instances)} "
            f"(Disregarding {report.excluded_recent_count} recently launched instances)"
        ),
        f"CURRENT MONTHLY COST: {report.total_monthly_cost.format(2)}",
        (
            f"CURRENT MONTHLY WASTE: {report.total_monthly_waste.format(2)} "
            f"({report.waste_percent_label} of the last bill)"
        ),
        f"LAST AWS BILL: {report.last_bill.format(2)}",
    ]


def render_report(report: Report, console: Console, output: str = "table") -> None:
    """Print ``report`` as a table (default) or as JSON."""
    if output == "json":
        console.print_json(json.dumps(report.to_dict()))
        return

    console.print()
    console.print(build_table(report))
    for line in summary_lines(report):
        console.print(line, highlight=False)
    console.print()
