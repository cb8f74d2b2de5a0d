"""
Data models for the idle instance report.

Defines the typed structures that flow through the pipeline:
inventory → evaluation → aggregation → rendering.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, NamedTuple, Protocol

from detect.money import Money

# Display name used when an instance carries no ``Name`` tag
UNNAMED_INSTANCE = "No name"


class ResourceKind(str, Enum):
    """Kind of priced resource."""

    COMPUTE = "Compute"
    STORAGE = "Storage"


class PriceQuoteKey(NamedTuple):
    """Identifies one price lookup; used as the price cache key."""

    kind: ResourceKind
    subtype: str
    region: str


@dataclass(frozen=True)
class UtilizationSample:
    """One CloudWatch datapoint for a single metric."""

    timestamp: datetime
    maximum: float | None = None
    average: float | None = None


@dataclass(frozen=True)
class VolumeDescriptor:
    """An attached EBS volume."""

    volume_id: str
    size: int
    """Size in GiB."""

    volume_type: str
    """EBS volume API name, e.g. ``"gp3"``."""


@dataclass(frozen=True)
class InstanceSnapshot:
    """A running instance as returned by the inventory call."""

    instance_id: str
    instance_type: str
    launch_time: datetime
    name: str = UNNAMED_INSTANCE
    volume_ids: tuple[str, ...] = ()


# One reservation worth of instances
InstanceGrouping = list[InstanceSnapshot]


@dataclass(frozen=True)
class EvaluatedInstance:
    """
    A fully priced and classified instance.

    ``monthly_cost`` is always ``instance_cost + storage_cost`` and
    ``is_waste`` is always derived from ``peak_usage_ratio``; both are
    computed by :class:`detect.evaluator.InstanceEvaluator`.
    """

    instance_id: str
    name: str
    instance_type: str
    launch_time: datetime

    instance_cost: Money
    """Compute unit price × 720 hours."""

    storage_cost: Money
    """Sum of storage unit price × size over attached volumes."""

    monthly_cost: Money

    storage_size_total: int
    """Total attached storage in GiB."""

    peak_usage_ratio: float
    """Fraction of 10-minute windows where max CPU exceeded the usage criteria."""

    disk_activity_ratio: float
    """Fraction of 10-minute windows with any disk read."""

    average_bytes_in: float
    average_bytes_out: float
    is_waste: bool

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for JSON output."""
        return {
            "instance_id": self.instance_id,
            "name": self.name,
            "instance_type": self.instance_type,
            "launch_time": self.launch_time.isoformat(),
            "instance_cost": self.instance_cost.format(),
            "storage_cost": self.storage_cost.format(),
            "monthly_cost": self.monthly_cost.format(),
            "storage_size_total": self.storage_size_total,
            "peak_usage_ratio": round(self.peak_usage_ratio, 4),
            "disk_activity_ratio": round(self.disk_activity_ratio, 4),
            "average_bytes_in": self.average_bytes_in,
            "average_bytes_out": self.average_bytes_out,
            "is_waste": self.is_waste,
        }

    def __str__(self) -> str:
        label = "waste" if self.is_waste else "in use"
        return f"{self.instance_id} ({self.instance_type}) {self.monthly_cost.format(2)}/mo [{label}]"


@dataclass(frozen=True)
class Report:
    """Portfolio totals plus the retained instances, oldest first."""

    instances: list[EvaluatedInstance]
    total_monthly_cost: Money
    total_monthly_waste: Money
    excluded_recent_count: int
    last_bill: Money

    waste_percent_of_bill: float
    """``total_monthly_waste / last_bill * 100``; 0.0 when the bill is zero."""

    cpu_usage_criteria: float
    waste_ratio_threshold: float
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def waste_percent_label(self) -> str:
        return f"{self.waste_percent_of_bill:.2f}%"

    @property
    def waste_count(self) -> int:
        return sum(1 for i in self.instances if i.is_waste)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for JSON output."""
        return {
            "generated_at": self.generated_at.isoformat(),
            "instances": [i.to_dict() for i in self.instances],
            "instance_count": len(self.instances),
            "excluded_recent_count": self.excluded_recent_count,
            "total_monthly_cost": self.total_monthly_cost.format(2),
            "total_monthly_waste": self.total_monthly_waste.format(2),
            "last_bill": self.last_bill.format(2),
            "waste_percent_of_bill": self.waste_percent_label,
            "cpu_usage_criteria": self.cpu_usage_criteria,
            "waste_ratio_threshold": self.waste_ratio_threshold,
        }


class CloudCollaborator(Protocol):
    """The provider calls the report depends on. See :mod:`ingest.aws`."""

    async def list_running_instances(self) -> list[InstanceGrouping]: ...

    async def list_volumes(self, volume_ids: Sequence[str]) -> list[VolumeDescriptor]: ...

    async def get_metric_series(
        self,
        instance_id: str,
        metric_name: str,
        statistic: str,
        start: datetime,
        end: datetime,
        period_seconds: int,
    ) -> list[UtilizationSample]: ...

    async def query_price(self, kind: ResourceKind, filters: list[dict[str, str]]) -> list[Any]: ...

    async def get_last_month_total_cost(self) -> str: ...
