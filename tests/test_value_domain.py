import math

import pytest

from oracle.models import OutcomeRequest, ValueDomain
from oracle.value_domain import (
    DEFAULT_CURRENCY_DOMAIN,
    DEFAULT_INDEX_DOMAIN,
    PERCENT_SUGGESTED_DOMAIN,
    TEMPERATURE_SUGGESTED_DOMAIN,
    clamp_to_domain,
    domain_tolerance,
    format_usd,
    format_value,
    index_to_value,
    normalize_to_index,
    resolve_value_domain,
    suggest_value_domain,
)

DOMAINS = [
    ValueDomain(0, 100),
    ValueDomain(0, 1_000_000_000),
    ValueDomain(-25, 125),
    ValueDomain(-20, 60),
    ValueDomain(88_000, 112_000),
]


@pytest.mark.parametrize("domain", DOMAINS)
def test_index_round_trip_within_one_step(domain):
    step = domain.span / 100
    for fraction in (0.0, 0.001, 0.1, 0.333, 0.5, 0.77, 0.999, 1.0):
        value = domain.min + domain.span * fraction
        index = normalize_to_index(value, domain)
        assert abs(index_to_value(index, domain) - value) <= step * (1 + 1e-9)


@pytest.mark.parametrize("value", [-1e12, -1.0, 0.0, 37.2, 1e12, math.inf, -math.inf, math.nan])
def test_normalize_to_index_always_in_range(value):
    index = normalize_to_index(value, ValueDomain(0, 100))
    assert isinstance(index, int)
    assert 0 <= index <= 100


def test_normalize_rounds_up_above_minimum():
    assert normalize_to_index(0.0001, ValueDomain(0, 100)) == 1
    assert normalize_to_index(0, ValueDomain(0, 100)) == 0
    assert normalize_to_index(500_000_000, DEFAULT_CURRENCY_DOMAIN) == 50


def test_normalize_degenerate_domain_is_zero():
    assert normalize_to_index(5, ValueDomain(5, 5)) == 0
    assert index_to_value(40, ValueDomain(5, 5)) == 5


def test_clamp_to_domain():
    domain = ValueDomain(-20, 60)
    assert clamp_to_domain(75, domain) == 60
    assert clamp_to_domain(-30, domain) == -20
    assert clamp_to_domain(math.nan, domain) == -20


def test_domain_tolerance_has_floor_of_one():
    assert domain_tolerance(ValueDomain(0, 1), 0.1) == 1.0
    assert domain_tolerance(ValueDomain(0, 1000), 0.1) == 100.0


def test_resolve_value_domain_prefers_valid_explicit_domain():
    explicit = ValueDomain(10, 20)
    assert resolve_value_domain(OutcomeRequest("m1", "q", unit="USD", domain=explicit)) == explicit


def test_resolve_value_domain_defaults_by_unit():
    degenerate = ValueDomain(3, 3)
    assert resolve_value_domain(OutcomeRequest("m1", "q", unit="USD", domain=degenerate)) == DEFAULT_CURRENCY_DOMAIN
    assert resolve_value_domain(OutcomeRequest("m1", "q", unit="$")) == DEFAULT_CURRENCY_DOMAIN
    assert resolve_value_domain(OutcomeRequest("m1", "q", unit="%")) == DEFAULT_INDEX_DOMAIN
    assert resolve_value_domain(OutcomeRequest("m1", "q")) == DEFAULT_INDEX_DOMAIN


def test_format_helpers():
    assert format_usd(1_500_000) == "$1.50M"
    assert format_usd(2_000_000_000) == "$2.00B"
    assert format_usd(45_300) == "$45.30K"
    assert format_value(12.5, "%") == "12.5%"
    assert format_value(-2, "°C") == "-2.0°C"
    assert format_value(42, None) == "42.0"


def test_suggest_domain_from_mentioned_amount():
    domain = suggest_value_domain("Will BTC close above $100,000?", "USD")
    assert domain.min == pytest.approx(88_000)
    assert domain.max == pytest.approx(112_000)


def test_suggest_domain_from_asset_keyword():
    assert suggest_value_domain("Bitcoin price at year end", "USD") == ValueDomain(0, 300_000)


def test_suggest_domain_from_category():
    assert suggest_value_domain("ACME share price", "USD", category="equities") == ValueDomain(0, 5_000)


def test_suggest_domain_fixed_ranges_and_none():
    assert suggest_value_domain("CPI print", "%") == PERCENT_SUGGESTED_DOMAIN
    assert suggest_value_domain("Berlin high", "celsius") == TEMPERATURE_SUGGESTED_DOMAIN
    assert suggest_value_domain("Goals scored", None) is None
    assert suggest_value_domain("Something unrelated", "USD") is None
