"""Country-based gateway routing.

Static table of destination countries with their phone prefixes,
preferred gateway and relative cost. The table is built once and
never mutated at runtime.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from sms_dispatch.core.logging import get_logger

log = get_logger(__name__)


UNKNOWN_COUNTRY = "UNKNOWN"


@dataclass(frozen=True)
class CountryInfo:
    """Routing entry for one destination country."""

    code: str  # ISO 3166-1 alpha-2
    name: str
    phone_prefix: str  # "+244"
    preferred_gateway: str
    cost_multiplier: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "code": self.code,
            "name": self.name,
            "phone_prefix": self.phone_prefix,
            "preferred_gateway": self.preferred_gateway,
            "cost_multiplier": self.cost_multiplier,
        }


DEFAULT_COUNTRIES: tuple[CountryInfo, ...] = (
    CountryInfo("AO", "Angola", "+244", "bulkgate", 1.0),
    CountryInfo("PT", "Portugal", "+351", "bulksms", 1.2),
    CountryInfo("BR", "Brazil", "+55", "bulksms", 1.1),
    CountryInfo("MZ", "Mozambique", "+258", "bulkgate", 1.0),
    CountryInfo("CV", "Cape Verde", "+238", "bulkgate", 1.3),
    CountryInfo("GW", "Guinea-Bissau", "+245", "bulkgate", 1.4),
    CountryInfo("ST", "São Tomé and Príncipe", "+239", "bulkgate", 1.5),
    CountryInfo("TL", "East Timor", "+670", "bulkgate", 1.6),
    CountryInfo("US", "United States", "+1", "bulksms", 0.8),
    CountryInfo("GB", "United Kingdom", "+44", "bulksms", 0.9),
    CountryInfo("DE", "Germany", "+49", "bulksms", 0.9),
    CountryInfo("FR", "France", "+33", "bulksms", 0.9),
    CountryInfo("ES", "Spain", "+34", "bulksms", 0.9),
    CountryInfo("IT", "Italy", "+39", "bulksms", 0.9),
)

# Prefixes recognized on numbers written without "+" (home region only)
NATIONAL_DIGIT_PREFIXES: tuple[tuple[str, str], ...] = (
    ("244", "AO"),
    ("351", "PT"),
    ("258", "MZ"),
    ("238", "CV"),
    ("245", "GW"),
    ("239", "ST"),
    ("670", "TL"),
)

PALOP_COUNTRIES = frozenset({"AO", "PT", "BR", "MZ", "CV", "GW", "ST", "TL"})

_STRIP_PATTERN = re.compile(r"[\s\-()]")


@dataclass
class BatchRouting:
    """Numbers of a batch partitioned by preferred gateway."""

    buckets: dict[str, list[str]] = field(default_factory=dict)
    total: int = 0
    home_country_count: int = 0

    @property
    def per_gateway(self) -> dict[str, int]:
        return {gateway: len(numbers) for gateway, numbers in self.buckets.items()}

    @property
    def international_count(self) -> int:
        return self.total - self.home_country_count

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            **{gateway: list(numbers) for gateway, numbers in self.buckets.items()},
            "summary": {
                "total": self.total,
                "per_gateway": self.per_gateway,
                "home_country_count": self.home_country_count,
                "international_count": self.international_count,
            },
        }


@dataclass
class CostEstimate:
    """Credits needed for a batch, broken down per country."""

    total_credits: float
    segments: int
    by_country: dict[str, dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_credits": self.total_credits,
            "segments": self.segments,
            "by_country": self.by_country,
        }


class CountryRoutingTable:
    """Destination-country lookup for gateway selection.

    Args:
        countries: Country entries; defaults to DEFAULT_COUNTRIES
        home_country: Country code treated as domestic
        default_gateway: Gateway used for unknown countries
    """

    def __init__(
        self,
        countries: Iterable[CountryInfo] = DEFAULT_COUNTRIES,
        home_country: str = "AO",
        default_gateway: str = "bulksms",
    ):
        self.home_country = home_country
        self.default_gateway = default_gateway
        self._by_code: dict[str, CountryInfo] = {c.code: c for c in countries}
        # Longest first so "+244" wins over a shorter prefix it starts with
        self._prefixes: list[tuple[str, str]] = sorted(
            ((c.phone_prefix, c.code) for c in self._by_code.values()),
            key=lambda item: len(item[0]),
            reverse=True,
        )

    def detect_country_from_phone(self, phone: str) -> str:
        """Detect the destination country of a phone number.

        Args:
            phone: Phone number in any common format

        Returns:
            Country code, or "UNKNOWN" when no rule matches
        """
        normalized = _STRIP_PATTERN.sub("", phone or "")

        if normalized.startswith("+"):
            for prefix, code in self._prefixes:
                if normalized.startswith(prefix):
                    return code

        for digits, code in NATIONAL_DIGIT_PREFIXES:
            if normalized.startswith(digits):
                return code

        return UNKNOWN_COUNTRY

    def get_preferred_gateway(self, country_code: str) -> str:
        country = self._by_code.get(country_code)
        return country.preferred_gateway if country else self.default_gateway

    def get_cost_multiplier(self, country_code: str) -> float:
        country = self._by_code.get(country_code)
        return country.cost_multiplier if country else 1.0

    def get_country_info(self, country_code: str) -> CountryInfo | None:
        return self._by_code.get(country_code)

    def all_countries(self) -> list[CountryInfo]:
        """All known countries sorted by name."""
        return sorted(self._by_code.values(), key=lambda c: c.name)

    def is_home_country_number(self, phone: str) -> bool:
        return self.detect_country_from_phone(phone) == self.home_country

    def is_palop_country(self, country_code: str) -> bool:
        return country_code in PALOP_COUNTRIES

    def gateway_for_phone(self, phone: str) -> tuple[str, str]:
        """Return (country_code, preferred_gateway) for a number."""
        code = self.detect_country_from_phone(phone)
        return code, self.get_preferred_gateway(code)

    def route_batch(self, phones: Iterable[str]) -> BatchRouting:
        """Partition numbers by preferred gateway in a single pass.

        Each bucket keeps the input order of its numbers.
        """
        routing = BatchRouting()
        for phone in phones:
            code, gateway = self.gateway_for_phone(phone)
            routing.buckets.setdefault(gateway, []).append(phone)
            routing.total += 1
            if code == self.home_country:
                routing.home_country_count += 1

        log.debug("Batch routed", total=routing.total, per_gateway=routing.per_gateway)
        return routing

    def estimate_cost(self, phones: Iterable[str], segments: int = 1) -> CostEstimate:
        """Estimate credits for sending one message to each number.

        Args:
            phones: Destination numbers
            segments: Segments per message

        Returns:
            Total credits plus a per-country breakdown
        """
        by_country: dict[str, dict[str, Any]] = {}
        for phone in phones:
            code = self.detect_country_from_phone(phone)
            entry = by_country.setdefault(
                code,
                {"count": 0, "multiplier": self.get_cost_multiplier(code), "credits": 0.0},
            )
            entry["count"] += 1
            entry["credits"] += segments * entry["multiplier"]

        total = round(sum(entry["credits"] for entry in by_country.values()), 4)
        return CostEstimate(total_credits=total, segments=segments, by_country=by_country)
