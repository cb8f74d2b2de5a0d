"""
On-demand unit prices from the AWS Price List API.

:class:`PriceResolver` maps an instance type or EBS volume type to a unit
:class:`~detect.money.Money` price. Each resolver owns its caches and is built
fresh for every report run; within a run the price list is assumed stable, so
entries never expire.

Concurrent evaluations routinely ask for the same type at the same time, so
lookups are single-flight: the first caller starts the query and every later
caller for that key awaits the same task.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any

from config.settings import Settings
from detect.exceptions import ParseError, PriceResolutionError, PricingAmbiguityError
from detect.models import CloudCollaborator, PriceQuoteKey, ResourceKind
from detect.money import Money

logger = logging.getLogger(__name__)


def _term(field: str, value: str) -> dict[str, str]:
    return {"Type": "TERM_MATCH", "Field": field, "Value": value}


def build_price_filters(key: PriceQuoteKey, operating_system: str = "Linux") -> list[dict[str, str]]:
    """Return the ``GetProducts`` filters selecting exactly one on-demand product."""
    if key.kind is ResourceKind.COMPUTE:
        return [
            _term("productFamily", "Compute Instance"),
            _term("regionCode", key.region),
            _term("instanceType", key.subtype),
            _term("tenancy", "Shared"),
            _term("preInstalledSw", "NA"),
            _term("capacitystatus", "Used"),
            _term("operatingSystem", operating_system),
        ]
    return [
        _term("productFamily", "Storage"),
        _term("volumeApiName", key.subtype),
        _term("regionCode", key.region),
    ]


def parse_price_records(records: Sequence[Any], key: PriceQuoteKey) -> Money:
    """
    Extract the on-demand USD unit price from a ``PriceList`` response.

    Parameters
    ----------
    records : Sequence
        Raw ``PriceList`` entries, either JSON strings (as boto3 returns them)
        or already-decoded dicts.
    key : PriceQuoteKey
        The lookup these records answer; used in error messages.

    Raises
    ------
    PricingAmbiguityError
        Unless exactly one record matched.
    PriceResolutionError
        If the record has no on-demand USD price or the price is malformed.
    """
    if len(records) != 1:
        raise PricingAmbiguityError(key.kind.value, key.subtype, len(records))

    raw = records[0]
    try:
        product = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        on_demand = next(iter(product["terms"]["OnDemand"].values()))
        dimension = next(iter(on_demand["priceDimensions"].values()))
        usd = dimension["pricePerUnit"]["USD"]
        return Money.from_decimal_string(usd)
    except ParseError as exc:
        raise PriceResolutionError(key.kind.value, key.subtype, exc.message) from exc
    except (KeyError, StopIteration, TypeError, ValueError) as exc:
        raise PriceResolutionError(
            key.kind.value, key.subtype, f"unexpected price record layout ({exc!r})"
        ) from exc


class PriceResolver:
    """Memoized, single-flight unit price lookups for one report run."""

    def __init__(self, collaborator: CloudCollaborator, settings: Settings) -> None:
        self._collaborator = collaborator
        self._region = settings.AWS_DEFAULT_REGION
        self._operating_system = settings.OPERATING_SYSTEM
        self._caches: dict[ResourceKind, dict[PriceQuoteKey, asyncio.Task[Money]]] = {
            ResourceKind.COMPUTE: {},
            ResourceKind.STORAGE: {},
        }
        self._query_count = 0

    @property
    def query_count(self) -> int:
        """Number of external price queries issued so far."""
        return self._query_count

    async def resolve_compute_price(self, instance_type: str) -> Money:
        """Hourly on-demand price for ``instance_type``."""
        return await self._resolve(PriceQuoteKey(ResourceKind.COMPUTE, instance_type, self._region))

    async def resolve_storage_price(self, volume_type: str) -> Money:
        """Per GiB-month price for EBS ``volume_type``."""
        return await self._resolve(PriceQuoteKey(ResourceKind.STORAGE, volume_type, self._region))

    async def _resolve(self, key: PriceQuoteKey) -> Money:
        if not key.subtype:
            raise PriceResolutionError(key.kind.value, key.subtype, "empty resource type")

        cache = self._caches[key.kind]
        task = cache.get(key)
        if task is None:
            # Failed tasks stay cached; the run aborts on the first error anyway
            task = asyncio.ensure_future(self._query(key))
            cache[key] = task
        return await asyncio.shield(task)

    async def _query(self, key: PriceQuoteKey) -> Money:
        self._query_count += 1
        logger.info("Fetching %s price for %s in %s", key.kind.value, key.subtype, key.region)

        filters = build_price_filters(key, self._operating_system)
        records = await self._collaborator.query_price(key.kind, filters)
        price = parse_price_records(records, key)

        logger.debug("%s %s unit price: %s", key.kind.value, key.subtype, price)
        return price
