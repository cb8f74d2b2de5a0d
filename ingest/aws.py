"""
AWS collaborator for the idle instance report.

Implements :class:`detect.models.CloudCollaborator` on top of boto3:

- EC2 for running instances and attached EBS volumes,
- CloudWatch for per-instance utilization series,
- the Price List API for on-demand unit prices,
- Cost Explorer for last month's bill.

boto3 is blocking, so every call runs in a worker thread via
``asyncio.to_thread`` and the report can keep several requests in flight.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from config.settings import Settings
from detect.exceptions import BillingError, MetricFetchError
from detect.models import (
    UNNAMED_INSTANCE,
    InstanceGrouping,
    InstanceSnapshot,
    ResourceKind,
    UtilizationSample,
    VolumeDescriptor,
)

logger = logging.getLogger(__name__)

_NAME_TAG = "Name"


# ──────────────────────────────────────────────────────────────────────────────
# Response parsing
# ──────────────────────────────────────────────────────────────────────────────


def _instance_name(tags: list[dict[str, str]]) -> str:
    for tag in tags:
        if tag.get("Key") == _NAME_TAG and tag.get("Value"):
            return tag["Value"]
    return UNNAMED_INSTANCE


def parse_instance(raw: dict[str, Any]) -> InstanceSnapshot:
    """Build an :class:`InstanceSnapshot` from a ``DescribeInstances`` entry."""
    volume_ids = tuple(
        mapping["Ebs"]["VolumeId"]
        for mapping in raw.get("BlockDeviceMappings", [])
        if mapping.get("Ebs", {}).get("VolumeId")
    )
    return InstanceSnapshot(
        instance_id=raw.get("InstanceId", ""),
        instance_type=raw.get("InstanceType", ""),
        launch_time=raw.get("LaunchTime") or datetime.now(timezone.utc),
        name=_instance_name(raw.get("Tags", [])),
        volume_ids=volume_ids,
    )


def parse_datapoints(datapoints: list[dict[str, Any]]) -> list[UtilizationSample]:
    """Convert CloudWatch datapoints to samples ordered by timestamp."""
    samples = [
        UtilizationSample(
            timestamp=dp["Timestamp"],
            maximum=dp.get("Maximum"),
            average=dp.get("Average"),
        )
        for dp in datapoints
    ]
    return sorted(samples, key=lambda s: s.timestamp)


def previous_month_period(now: datetime) -> dict[str, str]:
    """Cost Explorer ``TimePeriod`` covering the previous calendar month (UTC)."""
    now = now.astimezone(timezone.utc)
    end = now.date().replace(day=1)
    if end.month == 1:
        start = end.replace(year=end.year - 1, month=12)
    else:
        start = end.replace(month=end.month - 1)
    return {"Start": str(start), "End": str(end)}


# ──────────────────────────────────────────────────────────────────────────────
# Collaborator
# ──────────────────────────────────────────────────────────────────────────────


class AwsCollaborator:
    """boto3-backed provider calls, one instance per report run."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        # The default boto3 session is shared process-wide and not thread-safe
        self._session = boto3.session.Session(
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            region_name=settings.AWS_DEFAULT_REGION,
        )
        self._clients: dict[tuple[str, str], Any] = {}
        self._clients_lock = threading.Lock()

    def _client(self, service: str, region: str | None = None) -> Any:
        """Return the cached boto3 client for ``service``, creating it once."""
        region = region or self._settings.AWS_DEFAULT_REGION
        key = (service, region)
        with self._clients_lock:
            if key not in self._clients:
                self._clients[key] = self._session.client(service, region_name=region)
            return self._clients[key]

    # ── EC2 ────────────────────────────────────────────

    def _list_running_instances(self) -> list[InstanceGrouping]:
        ec2 = self._client("ec2")
        paginator = ec2.get_paginator("describe_instances")

        groupings: list[InstanceGrouping] = []
        for page in paginator.paginate(
            Filters=[{"Name": "instance-state-name", "Values": ["running"]}]
        ):
            for reservation in page.get("Reservations", []):
                groupings.append([parse_instance(i) for i in reservation.get("Instances", [])])

        logger.info(
            "Fetched %d running instances in %d reservations",
            sum(len(g) for g in groupings),
            len(groupings),
        )
        return groupings

    async def list_running_instances(self) -> list[InstanceGrouping]:
        return await asyncio.to_thread(self._list_running_instances)

    def _list_volumes(self, volume_ids: Sequence[str]) -> list[VolumeDescriptor]:
        # An empty VolumeIds list would describe every volume in the account
        if not volume_ids:
            return []

        response = self._client("ec2").describe_volumes(VolumeIds=list(volume_ids))
        return [
            VolumeDescriptor(
                volume_id=v.get("VolumeId", ""),
                size=v.get("Size", 0),
                volume_type=v.get("VolumeType", ""),
            )
            for v in response.get("Volumes", [])
        ]

    async def list_volumes(self, volume_ids: Sequence[str]) -> list[VolumeDescriptor]:
        return await asyncio.to_thread(self._list_volumes, volume_ids)

    # ── CloudWatch ─────────────────────────────────────

    def _get_metric_series(
        self,
        instance_id: str,
        metric_name: str,
        statistic: str,
        start: datetime,
        end: datetime,
        period_seconds: int,
    ) -> list[UtilizationSample]:
        try:
            response = self._client("cloudwatch").get_metric_statistics(
                Namespace="AWS/EC2",
                MetricName=metric_name,
                Dimensions=[{"Name": "InstanceId", "Value": instance_id}],
                StartTime=start,
                EndTime=end,
                Period=period_seconds,
                Statistics=[statistic],
            )
        except (BotoCoreError, ClientError) as exc:
            raise MetricFetchError(instance_id, metric_name, str(exc)) from exc

        samples = parse_datapoints(response.get("Datapoints", []))
        logger.debug("%s %s: %d datapoints", instance_id, metric_name, len(samples))
        return samples

    async def get_metric_series(
        self,
        instance_id: str,
        metric_name: str,
        statistic: str,
        start: datetime,
        end: datetime,
        period_seconds: int,
    ) -> list[UtilizationSample]:
        return await asyncio.to_thread(
            self._get_metric_series, instance_id, metric_name, statistic, start, end, period_seconds
        )

    # ── Price List ─────────────────────────────────────

    def _query_price(self, kind: ResourceKind, filters: list[dict[str, str]]) -> list[Any]:
        pricing = self._client("pricing", self._settings.PRICING_REGION)
        response = pricing.get_products(ServiceCode="AmazonEC2", Filters=filters)
        records = response.get("PriceList", [])
        logger.debug("%s price query returned %d records", kind.value, len(records))
        return records

    async def query_price(self, kind: ResourceKind, filters: list[dict[str, str]]) -> list[Any]:
        return await asyncio.to_thread(self._query_price, kind, filters)

    # ── Cost Explorer ──────────────────────────────────

    def _get_last_month_total_cost(self) -> str:
        period = previous_month_period(datetime.now(timezone.utc))
        logger.info("Fetching AWS bill from %s to %s", period["Start"], period["End"])

        response = self._client("ce").get_cost_and_usage(
            TimePeriod=period,
            Granularity="MONTHLY",
            Metrics=["UnblendedCost"],
        )

        results = response.get("ResultsByTime", [])
        try:
            return str(results[0]["Total"]["UnblendedCost"]["Amount"])
        except (IndexError, KeyError) as exc:
            raise BillingError(
                "Cost Explorer returned no total for last month",
                details={"period": period},
            ) from exc

    async def get_last_month_total_cost(self) -> str:
        return await asyncio.to_thread(self._get_last_month_total_cost)
