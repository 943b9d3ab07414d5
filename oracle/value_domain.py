"""
Value domain mapping between real-world values and the outcome index.

Every market outcome is settled on an integer index from 0 to 100. Index 0
corresponds to the minimum of the market's value domain and index 100 to its
maximum; values in between are mapped linearly. This module owns that mapping,
the default domains per unit, and the domain suggestions used when a new
market does not define one.
"""

import math
import re
from typing import Optional

from oracle.models import MAX_OUTCOME_INDEX, OutcomeRequest, Unit, ValueDomain

MAX_DOLLAR_VALUE = 1_000_000_000  # $1B ceiling mapped to index 100

DEFAULT_CURRENCY_DOMAIN = ValueDomain(min=0, max=MAX_DOLLAR_VALUE)
DEFAULT_INDEX_DOMAIN = ValueDomain(min=0, max=MAX_OUTCOME_INDEX)

PERCENT_SUGGESTED_DOMAIN = ValueDomain(min=-25, max=125)
TEMPERATURE_SUGGESTED_DOMAIN = ValueDomain(min=-20, max=60)

_USD_KEYWORD_DOMAINS: tuple[tuple[re.Pattern, ValueDomain], ...] = (
    (re.compile(r"\bbitcoin\b|\bbtc\b", re.IGNORECASE), ValueDomain(0, 300_000)),
    (re.compile(r"\beth(?:ereum)?\b", re.IGNORECASE), ValueDomain(0, 40_000)),
    (re.compile(r"\bsolana\b|\bSOL\b"), ValueDomain(0, 2_000)),
    (re.compile(r"\bdogecoin\b|\bdoge\b", re.IGNORECASE), ValueDomain(0, 10)),
    (re.compile(r"\bgold\b|\box\b", re.IGNORECASE), ValueDomain(0, 4_000)),
    (re.compile(r"\boil\b|\bwti\b|\bbrent\b", re.IGNORECASE), ValueDomain(0, 500)),
)

_USD_CATEGORY_DEFAULTS: dict[str, ValueDomain] = {
    "crypto": ValueDomain(0, 250_000),
    "equities": ValueDomain(0, 5_000),
    "finance": ValueDomain(0, 1_000_000),
    "commodities": ValueDomain(0, 10_000),
}


def resolve_value_domain(request: OutcomeRequest) -> ValueDomain:
    """
    Resolve the domain used for one check of a market.

    A valid explicit domain wins; otherwise currency markets default to
    [0, $1B] and everything else to [0, 100].

    Args:
        request: Oracle request for the market

    Returns:
        Effective value domain
    """
    if request.domain is not None and request.domain.is_valid():
        return request.domain

    if Unit.from_raw(request.unit) is Unit.CURRENCY:
        return DEFAULT_CURRENCY_DOMAIN

    return DEFAULT_INDEX_DOMAIN


def clamp_to_domain(value: float, domain: ValueDomain) -> float:
    """Clamp a value into the domain; non-finite values map to the minimum."""
    if not math.isfinite(value):
        return domain.min
    return min(domain.max, max(domain.min, value))


def domain_tolerance(domain: ValueDomain, ratio: float) -> float:
    """Slack allowed outside the domain: ``ratio`` of the span, at least 1."""
    return max(1.0, domain.span * ratio)


def is_within_domain(value: float, domain: ValueDomain, tolerance: float = 0.0) -> bool:
    """True if ``value`` is finite and inside the domain widened by ``tolerance``."""
    if not math.isfinite(value):
        return False
    return domain.min - tolerance <= value <= domain.max + tolerance


def clamp_outcome_index(index: float) -> int:
    """Round and clamp to an integer outcome index in [0, 100]."""
    if not math.isfinite(index):
        return 0
    return int(min(MAX_OUTCOME_INDEX, max(0, round(index))))


def normalize_to_index(value: float, domain: ValueDomain) -> int:
    """
    Map a real-world value onto the 0-100 outcome index.

    The value is clamped into the domain first, so any finite input yields a
    valid index. Ratios are rounded up, so a value strictly above the
    minimum never maps to index 0.

    Args:
        value: Observed value in market units
        domain: Market value domain

    Returns:
        Integer outcome index in [0, 100]; 0 for a degenerate domain
    """
    if not math.isfinite(value):
        return 0

    span = domain.span
    if not span > 0:
        return 0

    clamped = clamp_to_domain(value, domain)
    # Scale before dividing so exact index values are not pushed up by ceil
    scaled = (clamped - domain.min) * MAX_OUTCOME_INDEX / span
    return clamp_outcome_index(math.ceil(scaled))


def index_to_value(index: float, domain: ValueDomain) -> float:
    """
    Map an outcome index back to a value in market units.

    Args:
        index: Outcome index; clamped to [0, 100]
        domain: Market value domain

    Returns:
        Value on the linear scale; the domain minimum for a degenerate domain
    """
    if not math.isfinite(index):
        return domain.min

    clamped_index = min(MAX_OUTCOME_INDEX, max(0, index))
    span = domain.span
    if not span > 0:
        return domain.min

    return domain.min + (span * clamped_index) / MAX_OUTCOME_INDEX


def format_usd(value: float) -> str:
    """Format a dollar amount with K/M/B suffixes (e.g. "$1.50M")."""
    if not math.isfinite(value):
        return "0"

    abs_value = abs(value)
    sign = "-" if value < 0 else ""

    if abs_value >= 1_000_000_000:
        return f"{sign}${abs_value / 1_000_000_000:.2f}B"
    if abs_value >= 1_000_000:
        return f"{sign}${abs_value / 1_000_000:.2f}M"
    if abs_value >= 1_000:
        return f"{sign}${abs_value / 1_000:.2f}K"
    if abs_value >= 1:
        return f"{sign}${abs_value:.0f}"
    return f"{sign}${abs_value:.2g}"


def format_value(value: float, unit: Optional[str]) -> str:
    """
    Format a value in market units for reasoning text and prompts.

    Args:
        value: Value to format
        unit: Raw market unit string

    Returns:
        Human-readable value (e.g. "$1.50M", "12.5%", "-2.0°C", "42.0")
    """
    if not math.isfinite(value):
        return "0"

    kind = Unit.from_raw(unit)

    if kind is Unit.CURRENCY:
        return format_usd(value)

    if kind is Unit.PERCENT:
        return f"{value:.1f}%"

    if kind is Unit.TEMPERATURE:
        return f"{value:.1f}°C"

    if abs(value) >= 1000:
        return f"{value:.0f}"

    return f"{value:.1f}" if abs(value) >= 1 else f"{value:.2g}"


def suggest_value_domain(
    title: str,
    unit: Optional[str],
    description: Optional[str] = None,
    resolution_criteria: Optional[str] = None,
    category: Optional[str] = None,
    max_usd_value: float = MAX_DOLLAR_VALUE
) -> Optional[ValueDomain]:
    """
    Suggest a value domain for a new market from its text.

    Dollar markets are sized from amounts mentioned in the text, then from
    asset keyword presets, then from category defaults. Percent and Celsius
    markets get fixed ranges. Other units get no suggestion.

    Args:
        title: Market title
        unit: Raw market unit string
        description: Market description
        resolution_criteria: Resolution rules text
        category: Market category
        max_usd_value: Upper cap for dollar domains

    Returns:
        Suggested ValueDomain, or None if nothing applies
    """
    kind = Unit.from_raw(unit)

    if kind is Unit.CURRENCY:
        return _infer_usd_value_domain(
            title, description, resolution_criteria, category, max_usd_value
        )

    if kind is Unit.PERCENT:
        return PERCENT_SUGGESTED_DOMAIN

    if kind is Unit.TEMPERATURE:
        return TEMPERATURE_SUGGESTED_DOMAIN

    return None


def _infer_usd_value_domain(
    title: str,
    description: Optional[str],
    resolution_criteria: Optional[str],
    category: Optional[str],
    max_usd_value: float
) -> Optional[ValueDomain]:
    # Imported here: value_extractor depends on this module for tolerances
    from oracle.value_extractor import extract_currency_values

    text = " ".join(part for part in (title, description, resolution_criteria) if part)
    hints = [min(amount, max_usd_value) for amount in extract_currency_values(text)]

    if hints:
        min_hint = min(hints)
        max_hint = max(hints)
        span = max(max_hint - min_hint, max(max_hint, min_hint) * 0.3, 1)
        padding = max(span * 0.4, 1)

        low = max(0.0, min_hint - padding)
        high = min(max_usd_value, max_hint + padding)

        if high <= low:
            high = min(max_usd_value, low + max(span, low * 0.25, 1))

        if high > low:
            return ValueDomain(min=low, max=high)

    combined = f"{title} {category or ''}"
    for pattern, preset in _USD_KEYWORD_DOMAINS:
        if pattern.search(combined):
            return _clamp_usd_domain(preset, max_usd_value)

    category_key = (category or "").lower()
    if category_key in _USD_CATEGORY_DEFAULTS:
        return _clamp_usd_domain(_USD_CATEGORY_DEFAULTS[category_key], max_usd_value)

    return None


def _clamp_usd_domain(domain: ValueDomain, max_usd_value: float) -> ValueDomain:
    low = max(0.0, min(max_usd_value, domain.min))
    high = max(low + 1, min(max_usd_value, domain.max))
    return ValueDomain(min=low, max=high)
