"""
Error taxonomy for the idle instance report.

Every error raised by the report pipeline derives from
:class:`IdleReportError`. None of them are recovered locally: a single
failure aborts the run before anything is rendered.
"""

from __future__ import annotations

from typing import Any


class IdleReportError(Exception):
    """Base class for all report errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging / JSON output."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ParseError(IdleReportError):
    """A decimal string could not be parsed into Money."""

    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(
            f"Cannot parse {raw!r} as a decimal amount: {reason}",
            details={"raw": raw},
        )
        self.raw = raw


class PriceResolutionError(IdleReportError):
    """No usable unit price for a required resource type."""

    def __init__(self, resource_kind: str, resource_type: str, reason: str = "") -> None:
        message = f'Price missing for {resource_kind} type "{resource_type}"'
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            details={"resource_kind": resource_kind, "resource_type": resource_type},
        )
        self.resource_kind = resource_kind
        self.resource_type = resource_type


class PricingAmbiguityError(PriceResolutionError):
    """The price list query did not return exactly one record."""

    def __init__(self, resource_kind: str, resource_type: str, match_count: int) -> None:
        super().__init__(
            resource_kind,
            resource_type,
            f"expected exactly 1 pricing record, got {match_count}",
        )
        self.match_count = match_count
        self.details["match_count"] = match_count


class MetricFetchError(IdleReportError):
    """CloudWatch refused or failed a metric query."""

    def __init__(self, instance_id: str, metric_name: str, reason: str) -> None:
        super().__init__(
            f"Failed to fetch {metric_name} for {instance_id}: {reason}",
            details={"instance_id": instance_id, "metric_name": metric_name},
        )
        self.instance_id = instance_id
        self.metric_name = metric_name


class BillingError(IdleReportError):
    """Cost Explorer did not return a usable total for the last month."""
