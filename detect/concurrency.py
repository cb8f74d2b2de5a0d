"""
Fail-fast gathering for the report pipeline.

A bare ``asyncio.gather`` re-raises the first exception but leaves the other
awaitables running. Every failure in this pipeline aborts the run, so the
helpers here cancel the remaining work before re-raising.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def gather_or_cancel(aws: Iterable[Awaitable[T]]) -> list[T]:
    """
    Await every item and return the results in input order.

    On the first exception (or if the caller is cancelled) the unfinished
    items are cancelled and awaited before the exception propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.debug("Cancelling %d pending tasks after failure", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        raise

