"""
Tests for the price resolver.

Uses the call-counting FakeCloud collaborator to verify:
- Price record parsing and its failure modes
- Memoization per resource key
- Single-flight deduplication of concurrent lookups
- Separate compute and storage caches
"""

from __future__ import annotations

import asyncio
import json

import pytest

from detect.exceptions import PriceResolutionError, PricingAmbiguityError
from detect.models import PriceQuoteKey, ResourceKind
from detect.money import Money
from detect.pricing import PriceResolver, build_price_filters, parse_price_records
from tests.fakes import FakeCloud, price_record

_KEY = PriceQuoteKey(ResourceKind.COMPUTE, "t3.micro", "us-east-1")


# ──────────────────────────────────────────────────────────────────────────────
# Record Parsing Tests
# ──────────────────────────────────────────────────────────────────────────────


class TestParsePriceRecords:
    """Tests for parse_price_records."""

    def test_parses_json_string_record(self):
        price = parse_price_records([price_record("0.0104000000")], _KEY)
        assert price == Money.from_decimal_string("0.0104")
        assert price.precision == 10

    def test_accepts_decoded_dict(self):
        price = parse_price_records([json.loads(price_record("0.10"))], _KEY)
        assert price.format() == "$0.10"

    def test_no_records_is_ambiguous(self):
        with pytest.raises(PricingAmbiguityError) as exc_info:
            parse_price_records([], _KEY)
        assert exc_info.value.match_count == 0
        assert exc_info.value.resource_type == "t3.micro"

    def test_several_records_is_ambiguous(self):
        with pytest.raises(PricingAmbiguityError) as exc_info:
            parse_price_records([price_record("0.10"), price_record("0.20")], _KEY)
        assert exc_info.value.match_count == 2

    def test_ambiguity_is_a_resolution_error(self):
        with pytest.raises(PriceResolutionError):
            parse_price_records([], _KEY)

    def test_missing_on_demand_terms(self):
        with pytest.raises(PriceResolutionError) as exc_info:
            parse_price_records([json.dumps({"terms": {}})], _KEY)
        assert exc_info.value.resource_kind == "Compute"

    def test_malformed_price_string(self):
        with pytest.raises(PriceResolutionError) as exc_info:
            parse_price_records([price_record("N/A")], _KEY)
        assert "t3.micro" in str(exc_info.value)


class TestPriceFilters:
    """Tests for GetProducts filter construction."""

    def test_compute_filters(self):
        filters = build_price_filters(_KEY, "Windows")
        values = {f["Field"]: f["Value"] for f in filters}
        assert values["productFamily"] == "Compute Instance"
        assert values["instanceType"] == "t3.micro"
        assert values["regionCode"] == "us-east-1"
        assert values["operatingSystem"] == "Windows"
        assert values["tenancy"] == "Shared"
        assert all(f["Type"] == "TERM_MATCH" for f in filters)

    def test_storage_filters(self):
        key = PriceQuoteKey(ResourceKind.STORAGE, "gp3", "eu-west-1")
        values = {f["Field"]: f["Value"] for f in build_price_filters(key)}
        assert values == {"productFamily": "Storage", "volumeApiName": "gp3", "regionCode": "eu-west-1"}


# ──────────────────────────────────────────────────────────────────────────────
# Resolver Tests
# ──────────────────────────────────────────────────────────────────────────────


class TestPriceResolver:
    """Tests for caching and single-flight behaviour."""

    def test_same_type_queried_once(self, test_settings):
        cloud = FakeCloud(compute_prices={"t3.micro": "0.0104"})
        resolver = PriceResolver(cloud, test_settings)

        async def _run():
            first = await resolver.resolve_compute_price("t3.micro")
            second = await resolver.resolve_compute_price("t3.micro")
            return first, second

        first, second = asyncio.run(_run())

        assert first == second == Money.from_decimal_string("0.0104")
        assert cloud.price_queries[(ResourceKind.COMPUTE, "t3.micro")] == 1
        assert resolver.query_count == 1

    def test_concurrent_lookups_share_one_query(self, test_settings):
        cloud = FakeCloud(compute_prices={"m5.large": "0.096"}, price_delay=0.01)
        resolver = PriceResolver(cloud, test_settings)

        async def _run():
            return await asyncio.gather(*(resolver.resolve_compute_price("m5.large") for _ in range(10)))

        prices = asyncio.run(_run())

        assert len(set(prices)) == 1
        assert cloud.price_queries[(ResourceKind.COMPUTE, "m5.large")] == 1

    def test_compute_and_storage_cached_separately(self, test_settings):
        cloud = FakeCloud(compute_prices={"gp2": "1.00"}, storage_prices={"gp2": "0.10"})
        resolver = PriceResolver(cloud, test_settings)

        async def _run():
            compute = await resolver.resolve_compute_price("gp2")
            storage = await resolver.resolve_storage_price("gp2")
            return compute, storage

        compute, storage = asyncio.run(_run())

        assert compute.format() == "$1.00"
        assert storage.format() == "$0.10"
        assert resolver.query_count == 2

    def test_missing_price_is_fatal(self, test_settings):
        resolver = PriceResolver(FakeCloud(), test_settings)

        with pytest.raises(PricingAmbiguityError) as exc_info:
            asyncio.run(resolver.resolve_storage_price("io2"))
        assert exc_info.value.resource_kind == "Storage"

    def test_empty_type_is_rejected_without_query(self, test_settings):
        cloud = FakeCloud()
        resolver = PriceResolver(cloud, test_settings)

        with pytest.raises(PriceResolutionError):
            asyncio.run(resolver.resolve_compute_price(""))
        assert resolver.query_count == 0

    def test_fresh_resolver_has_empty_cache(self, test_settings):
        cloud = FakeCloud(compute_prices={"t3.micro": "0.0104"})

        asyncio.run(PriceResolver(cloud, test_settings).resolve_compute_price("t3.micro"))
        asyncio.run(PriceResolver(cloud, test_settings).resolve_compute_price("t3.micro"))

        assert cloud.price_queries[(ResourceKind.COMPUTE, "t3.micro")] == 2
