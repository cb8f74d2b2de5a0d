"""
Utilization summaries for CloudWatch metric series.

Reduces a week of 10-minute datapoints into the scalars used to classify an
instance. Pure functions, no API calls.

Empty series
------------
Both ratios return ``0.0`` for an empty series. An instance that reported no
CPU datapoints at all therefore has no evidence of use and is classified as
waste.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import timedelta

from detect.models import UtilizationSample

logger = logging.getLogger(__name__)

# Trailing window and bucket size for every metric query
METRIC_WINDOW = timedelta(weeks=1)
METRIC_PERIOD_SECONDS = 60 * 10


def _ratio(matching: int, total: int) -> float:
    if total == 0:
        return 0.0
    return matching / total


def peak_usage_ratio(samples: Sequence[UtilizationSample], threshold: float) -> float:
    """
    Fraction of windows whose maximum CPU exceeded ``threshold``.

    Parameters
    ----------
    samples : Sequence[UtilizationSample]
        ``CPUUtilization`` datapoints carrying the ``Maximum`` statistic.
    threshold : float
        CPU percentage, e.g. ``3.0`` for 3%. Strictly greater counts as a peak.

    Returns
    -------
    float
        Ratio in ``[0, 1]``; ``0.0`` for an empty series.
    """
    if not samples:
        logger.debug("No CPU datapoints; peak usage ratio defaults to 0")
    peaks = sum(1 for s in samples if (s.maximum or 0) > threshold)
    return _ratio(peaks, len(samples))


def disk_activity_ratio(samples: Sequence[UtilizationSample]) -> float:
    """Fraction of windows with any disk read (``Maximum > 0``)."""
    active = sum(1 for s in samples if (s.maximum or 0) > 0)
    return _ratio(active, len(samples))


def average_throughput(samples: Sequence[UtilizationSample]) -> float:
    """
    Sum of the per-window ``Average`` statistic.

    A sum, not a mean: the per-window average bytes accumulated over the
    whole window.
    """
    return sum((s.average or 0) for s in samples)
