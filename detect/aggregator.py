"""
Portfolio aggregation for the idle instance report.

Flattens the running inventory, drops recently launched instances (perhaps
they are short-lived dev boxes), evaluates the rest concurrently and folds
the results into a :class:`Report`.

Usage
-----
    report = await generate_report(AwsCollaborator(settings), settings)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from functools import reduce

from config.settings import Settings
from detect.concurrency import gather_or_cancel
from detect.evaluator import WASTE_RATIO_THRESHOLD, InstanceEvaluator
from detect.models import CloudCollaborator, EvaluatedInstance, InstanceGrouping, InstanceSnapshot, Report
from detect.money import Money
from detect.pricing import PriceResolver

logger = logging.getLogger(__name__)

# Instances younger than this are left out of the report
RECENT_LAUNCH_WINDOW = timedelta(days=3)

# Totals accumulate at a higher precision than cents before display rounding
TOTALS_PRECISION = 4


# ──────────────────────────────────────────────────────────────────────────────
# Pure helpers
# ──────────────────────────────────────────────────────────────────────────────


def flatten(groupings: Iterable[InstanceGrouping]) -> list[InstanceSnapshot]:
    """Flatten reservation groupings, keeping encounter order."""
    return [snapshot for grouping in groupings for snapshot in grouping]


def split_recent(
    snapshots: Iterable[InstanceSnapshot],
    now: datetime,
) -> tuple[list[InstanceSnapshot], int]:
    """
    Separate instances launched within :data:`RECENT_LAUNCH_WINDOW`.

    An instance launched exactly three days before ``now`` is retained.

    Returns ``(retained, excluded_count)``.
    """
    cutoff = now - RECENT_LAUNCH_WINDOW
    retained: list[InstanceSnapshot] = []
    excluded = 0

    for snapshot in snapshots:
        if snapshot.launch_time <= cutoff:
            retained.append(snapshot)
        else:
            excluded += 1

    return retained, excluded


def sum_costs(costs: Iterable[Money]) -> Money:
    """Exact sum of ``costs`` starting from zero at :data:`TOTALS_PRECISION`."""
    return reduce(Money.add, costs, Money.zero(TOTALS_PRECISION))


def waste_percent(waste: Money, bill: Money) -> float:
    """``waste / bill * 100``, or ``0.0`` when there is no bill to compare with."""
    if bill.is_zero():
        return 0.0
    return (waste.to_decimal_units() / bill.to_decimal_units()) * 100


def build_report(
    evaluated: Iterable[EvaluatedInstance],
    excluded_recent_count: int,
    last_bill: Money,
    settings: Settings,
    now: datetime | None = None,
) -> Report:
    """Sort the evaluated instances oldest first and compute the totals."""
    instances = sorted(evaluated, key=lambda i: i.launch_time)

    total_cost = sum_costs(i.monthly_cost for i in instances)
    total_waste = sum_costs(i.monthly_cost for i in instances if i.is_waste)

    if last_bill.is_zero():
        logger.warning("Last bill is zero; waste percentage reported as 0%%")

    return Report(
        instances=instances,
        total_monthly_cost=total_cost,
        total_monthly_waste=total_waste,
        excluded_recent_count=excluded_recent_count,
        last_bill=last_bill,
        waste_percent_of_bill=waste_percent(total_waste, last_bill),
        cpu_usage_criteria=settings.CPU_USAGE_CRITERIA,
        waste_ratio_threshold=WASTE_RATIO_THRESHOLD,
        generated_at=now or datetime.now(timezone.utc),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Public Entry Point
# ──────────────────────────────────────────────────────────────────────────────


async def evaluate_all(
    evaluator: InstanceEvaluator,
    snapshots: list[InstanceSnapshot],
    max_concurrency: int,
    now: datetime,
) -> list[EvaluatedInstance]:
    """
    Evaluate ``snapshots`` with at most ``max_concurrency`` in flight; keeps order.

    The first failed evaluation cancels the others.
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def _bounded(snapshot: InstanceSnapshot) -> EvaluatedInstance:
        async with semaphore:
            return await evaluator.evaluate(snapshot, now)

    return await gather_or_cancel(_bounded(s) for s in snapshots)


async def generate_report(
    collaborator: CloudCollaborator,
    settings: Settings,
    now: datetime | None = None,
) -> Report:
    """
    Execute a full report run.

    1. List running instances and drop the recently launched ones.
    2. Price and classify the rest.
    3. Fetch last month's bill and compute the totals.

    Any error aborts the run; no partial report is returned.
    """
    now = now or datetime.now(timezone.utc)
    logger.info("Starting idle instance report")

    groupings = await collaborator.list_running_instances()
    retained, excluded = split_recent(flatten(groupings), now)
    logger.info(
        "Evaluating %d running instances (%d recently launched skipped)",
        len(retained),
        excluded,
    )

    resolver = PriceResolver(collaborator, settings)
    evaluator = InstanceEvaluator(collaborator, resolver, settings)
    evaluated = await evaluate_all(evaluator, retained, settings.MAX_CONCURRENCY, now)

    last_bill = Money.from_decimal_string(await collaborator.get_last_month_total_cost())

    report = build_report(evaluated, excluded, last_bill, settings, now)
    logger.info(
        "Report complete: %d instances, %d waste, %s/mo waste (%s of last bill), %d price lookups",
        len(report.instances),
        report.waste_count,
        report.total_monthly_waste.format(2),
        report.waste_percent_label,
        resolver.query_count,
    )
    return report
