"""Tests for country-based routing."""

from __future__ import annotations

import pytest

from sms_dispatch.services.country_routing import (
    DEFAULT_COUNTRIES,
    UNKNOWN_COUNTRY,
    CountryInfo,
    CountryRoutingTable,
)


@pytest.fixture
def table():
    """Default routing table with Angola as home country."""
    return CountryRoutingTable()


class TestCountryDetection:
    """Test destination country detection."""

    @pytest.mark.parametrize("country", DEFAULT_COUNTRIES, ids=lambda c: c.code)
    def test_every_prefix_is_detected(self, table, country):
        """Each configured prefix maps back to its country."""
        assert table.detect_country_from_phone(f"{country.phone_prefix}912345678") == country.code

    @pytest.mark.parametrize(
        "phone,expected",
        [
            ("+244 923 456 789", "AO"),
            ("+244-923-456-789", "AO"),
            ("(+351) 911 222 333", "PT"),
            ("244923456789", "AO"),
            ("351911222333", "PT"),
            ("258841234567", "MZ"),
            ("923456789", UNKNOWN_COUNTRY),
            ("", UNKNOWN_COUNTRY),
            ("+999123456", UNKNOWN_COUNTRY),
        ],
    )
    def test_detection(self, table, phone, expected):
        """Formatting is ignored and digit prefixes are recognized."""
        assert table.detect_country_from_phone(phone) == expected

    def test_longest_prefix_wins(self):
        """A longer prefix beats a shorter one it starts with."""
        table = CountryRoutingTable(
            countries=[
                CountryInfo("US", "United States", "+1", "bulksms"),
                CountryInfo("JM", "Jamaica", "+1876", "bulkgate"),
            ]
        )

        assert table.detect_country_from_phone("+18765551234") == "JM"
        assert table.detect_country_from_phone("+12125551234") == "US"

    def test_home_country(self, table):
        """Angolan numbers are home country numbers."""
        assert table.is_home_country_number("+244923456789") is True
        assert table.is_home_country_number("+351911222333") is False


class TestGatewayPreference:
    """Test per-country gateway and cost lookups."""

    def test_preferred_gateway(self, table):
        """Known countries use their preferred gateway."""
        assert table.get_preferred_gateway("AO") == "bulkgate"
        assert table.get_preferred_gateway("PT") == "bulksms"

    def test_unknown_country_uses_default(self, table):
        """Unknown countries use the default gateway at multiplier 1.0."""
        assert table.get_preferred_gateway(UNKNOWN_COUNTRY) == "bulksms"
        assert table.get_cost_multiplier(UNKNOWN_COUNTRY) == 1.0
        assert table.get_country_info(UNKNOWN_COUNTRY) is None

    def test_custom_default_gateway(self):
        """The default gateway is configurable."""
        table = CountryRoutingTable(default_gateway="routee")
        assert table.gateway_for_phone("+999123") == (UNKNOWN_COUNTRY, "routee")

    def test_cost_multiplier(self, table):
        """Multipliers come from the table."""
        assert table.get_cost_multiplier("PT") == 1.2
        assert table.get_cost_multiplier("US") == 0.8

    def test_palop(self, table):
        """Portuguese-speaking countries are flagged."""
        assert table.is_palop_country("MZ") is True
        assert table.is_palop_country("GB") is False

    def test_all_countries_sorted_by_name(self, table):
        """Countries are listed alphabetically."""
        names = [c.name for c in table.all_countries()]
        assert names == sorted(names)
        assert len(names) == len(DEFAULT_COUNTRIES)


class TestBatchRouting:
    """Test batch partitioning and cost estimates."""

    def test_route_batch(self, table):
        """Numbers are bucketed by gateway, keeping input order."""
        phones = ["+244923456789", "+351911222333", "+244912000000", "+999123456", "+5511987654321"]

        routing = table.route_batch(phones)

        assert routing.buckets == {
            "bulkgate": ["+244923456789", "+244912000000"],
            "bulksms": ["+351911222333", "+999123456", "+5511987654321"],
        }
        assert routing.total == 5
        assert routing.home_country_count == 2
        assert routing.international_count == 3
        assert routing.per_gateway == {"bulkgate": 2, "bulksms": 3}

    def test_palop_numbers_count_as_international(self, table):
        """Non-home numbers are international even when routed to bulkgate."""
        routing = table.route_batch(["+244923456789", "+258841234567"])

        assert routing.buckets == {"bulkgate": ["+244923456789", "+258841234567"]}
        assert routing.home_country_count == 1
        assert routing.international_count == 1

    def test_route_batch_summary(self, table):
        """The dictionary form carries a summary."""
        data = table.route_batch(["+244923456789"]).to_dict()

        assert data["bulkgate"] == ["+244923456789"]
        assert data["summary"]["total"] == 1
        assert data["summary"]["international_count"] == 0

    def test_route_empty_batch(self, table):
        """An empty batch has empty buckets."""
        routing = table.route_batch([])
        assert routing.buckets == {}
        assert routing.total == 0

    def test_estimate_cost(self, table):
        """Credits are segments times the country multiplier."""
        estimate = table.estimate_cost(["+244923456789", "+351911222333", "+351911222334"], segments=2)

        assert estimate.by_country["AO"] == {"count": 1, "multiplier": 1.0, "credits": 2.0}
        assert estimate.by_country["PT"]["count"] == 2
        assert estimate.total_credits == pytest.approx(2.0 + 2 * 2 * 1.2)
        assert estimate.to_dict()["segments"] == 2
