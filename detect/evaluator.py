"""
Per-instance pricing and classification.

:class:`InstanceEvaluator` turns an :class:`InstanceSnapshot` into an
:class:`EvaluatedInstance`:

1. Price the instance for a 720-hour month.
2. Price every attached EBS volume by size.
3. Pull a week of CloudWatch metrics (CPU, disk reads, network in/out).
4. Flag the instance as waste when CPU peaked above the usage criteria in
   fewer than 3% of the 10-minute windows.

There are no retries here; any collaborator failure propagates.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import reduce

from config.settings import Settings
from detect.concurrency import gather_or_cancel
from detect.models import CloudCollaborator, EvaluatedInstance, InstanceSnapshot, VolumeDescriptor
from detect.money import Money
from detect.pricing import PriceResolver
from detect.utilization import (
    METRIC_PERIOD_SECONDS,
    METRIC_WINDOW,
    average_throughput,
    disk_activity_ratio,
    peak_usage_ratio,
)

logger = logging.getLogger(__name__)

# Flat 30-day month; not calendar accurate
HOURS_PER_MONTH = 24 * 30

# Fraction of windows that must show CPU use for an instance to count as in use.
# Unrelated to CPU_USAGE_CRITERIA, which is a CPU percentage.
WASTE_RATIO_THRESHOLD = 3 / 100

# (metric name, statistic) pairs fetched for every instance
_METRICS = (
    ("CPUUtilization", "Maximum"),
    ("DiskReadBytes", "Maximum"),
    ("NetworkIn", "Average"),
    ("NetworkOut", "Average"),
)


def is_waste(ratio: float) -> bool:
    """Strictly below the waste ratio threshold is waste."""
    return ratio < WASTE_RATIO_THRESHOLD


class InstanceEvaluator:
    """Prices and classifies instances for one report run."""

    def __init__(
        self,
        collaborator: CloudCollaborator,
        resolver: PriceResolver,
        settings: Settings,
    ) -> None:
        self._collaborator = collaborator
        self._resolver = resolver
        self._cpu_usage_criteria = settings.CPU_USAGE_CRITERIA

    async def storage_cost(self, volumes: list[VolumeDescriptor]) -> Money:
        """Sum of unit price × size over ``volumes``, starting from $0.00."""
        prices = await gather_or_cancel(
            self._resolver.resolve_storage_price(v.volume_type) for v in volumes
        )
        return reduce(
            Money.add,
            (price.multiply(v.size) for price, v in zip(prices, volumes)),
            Money.zero(2),
        )

    async def evaluate(self, snapshot: InstanceSnapshot, now: datetime | None = None) -> EvaluatedInstance:
        """Price and classify a single instance."""
        now = now or datetime.now(timezone.utc)
        logger.debug("Evaluating %s (%s)", snapshot.instance_id, snapshot.instance_type)

        unit_price = await self._resolver.resolve_compute_price(snapshot.instance_type)
        instance_cost = unit_price.multiply(HOURS_PER_MONTH)

        volumes: list[VolumeDescriptor] = []
        if snapshot.volume_ids:
            volumes = await self._collaborator.list_volumes(list(snapshot.volume_ids))
        storage_cost = await self.storage_cost(volumes)
        storage_size_total = sum(v.size for v in volumes)

        start = now - METRIC_WINDOW
        cpu, disk_reads, network_in, network_out = await gather_or_cancel(
            self._collaborator.get_metric_series(
                snapshot.instance_id, metric, statistic, start, now, METRIC_PERIOD_SECONDS
            )
            for metric, statistic in _METRICS
        )

        ratio = peak_usage_ratio(cpu, self._cpu_usage_criteria)
        evaluated = EvaluatedInstance(
            instance_id=snapshot.instance_id,
            name=snapshot.name,
            instance_type=snapshot.instance_type,
            launch_time=snapshot.launch_time,
            instance_cost=instance_cost,
            storage_cost=storage_cost,
            monthly_cost=instance_cost.add(storage_cost),
            storage_size_total=storage_size_total,
            peak_usage_ratio=ratio,
            disk_activity_ratio=disk_activity_ratio(disk_reads),
            average_bytes_in=average_throughput(network_in),
            average_bytes_out=average_throughput(network_out),
            is_waste=is_waste(ratio),
        )

        logger.info("Evaluated %s", evaluated)
        return evaluated
