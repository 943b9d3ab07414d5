"""
Unit-aware numeric extraction from free text.

Each unit has its own family of patterns. Extraction only reports what the
text says: picking a representative value, rejecting outliers and weighting
are left to the aggregator.
"""

import logging
import math
import re
from typing import Optional

from oracle.models import Unit, ValueDomain
from oracle.value_domain import domain_tolerance, is_within_domain

# Configure module logger
logger = logging.getLogger(__name__)

_SUFFIX = r"(?:billion|million|trillion|thousand|bn|mm|m|b|t|k)"
_AMOUNT = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?"

_CURRENCY_PATTERNS: tuple[re.Pattern, ...] = (
    # $1,234.56 / $ 3.5 billion
    re.compile(rf"\$\s*{_AMOUNT}(?:\s?{_SUFFIX}\b)?", re.IGNORECASE),
    # USD 2,000 / US$ 1.2 million
    re.compile(rf"\b(?:usd|us\$|u\.s\.d\.)\s*{_AMOUNT}(?:\s?{_SUFFIX})?\b", re.IGNORECASE),
    # 3bn / 40k / 1.2 million
    re.compile(rf"\b\d+(?:\.\d+)?\s?{_SUFFIX}\b", re.IGNORECASE),
)

_CURRENCY_MARKERS = re.compile(r"usd|us\$|u\.s\.d\.|dollars?")
_TRAILING_SUFFIX = re.compile(r"(trillion|billion|million|thousand|bn|mm|m|b|t|k)$")

_SUFFIX_MULTIPLIERS: dict[str, float] = {
    "trillion": 1_000_000_000_000,
    "t": 1_000_000_000_000,
    "billion": 1_000_000_000,
    "bn": 1_000_000_000,
    "b": 1_000_000_000,
    "million": 1_000_000,
    "mm": 1_000_000,
    "m": 1_000_000,
    "thousand": 1_000,
    "k": 1_000,
}

_PERCENT_PATTERN = re.compile(
    r"(?P<number>-?\d+(?:\.\d+)?)\s?(?:%|percent(?:age)?(?:\s?points?)?|pct)",
    re.IGNORECASE,
)

_TEMPERATURE_PATTERN = re.compile(
    r"(?<![\w.])(?P<number>-?\d+(?:\.\d+)?)\s?(?:°\s?c|degrees?\s?c(?:elsius)?|c(?![a-z]))",
    re.IGNORECASE,
)

_NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")


def extract_values(
    text: str,
    unit: Unit,
    domain: ValueDomain,
    tolerance_ratio: float = 0.1
) -> list[float]:
    """
    Extract candidate values for ``unit`` from a block of text.

    Args:
        text: Free text (headline plus snippet)
        unit: Unit of the market value
        domain: Market value domain, used to screen generic numbers
        tolerance_ratio: Share of the domain span accepted outside it

    Returns:
        Values in the order they appear; may be empty
    """
    if not text:
        return []

    if unit is Unit.CURRENCY:
        return extract_currency_values(text)

    if unit is Unit.PERCENT:
        return extract_percentages(text)

    if unit is Unit.TEMPERATURE:
        return extract_temperatures(text)

    if unit is Unit.GENERIC:
        return extract_plain_numbers(text, domain, tolerance_ratio)

    raise ValueError(f"Unsupported unit: {unit!r}")


def extract_currency_values(text: str) -> list[float]:
    """
    Extract positive dollar amounts, resolving magnitude suffixes.

    The same amount matched by several patterns is reported once.

    Args:
        text: Free text

    Returns:
        Distinct amounts in first-seen order
    """
    if not text:
        return []

    amounts: dict[float, None] = {}

    for pattern in _CURRENCY_PATTERNS:
        for match in pattern.finditer(text):
            amount = parse_amount_token(match.group(0))
            if amount is not None and math.isfinite(amount) and amount > 0:
                amounts.setdefault(amount, None)

    return list(amounts)


def parse_amount_token(token: str) -> Optional[float]:
    """
    Parse a matched currency token such as "$1.5 million" or "USD 2,000".

    Args:
        token: Matched text

    Returns:
        Amount in dollars, or None if no number could be read
    """
    cleaned = _CURRENCY_MARKERS.sub("", token.lower())
    cleaned = re.sub(r"[,\s]+", "", cleaned).strip()

    multiplier = 1.0
    numeric_portion = cleaned

    suffix_match = _TRAILING_SUFFIX.search(cleaned)
    if suffix_match:
        suffix = suffix_match.group(1)
        multiplier = _SUFFIX_MULTIPLIERS[suffix]
        numeric_portion = cleaned[:suffix_match.start()]

    numeric_portion = re.sub(r"[^0-9.\-]", "", numeric_portion)
    if not numeric_portion:
        return None

    try:
        return float(numeric_portion) * multiplier
    except ValueError:
        logger.debug(f"Could not parse amount token: {token!r}")
        return None


def extract_percentages(text: str) -> list[float]:
    """Extract values written as "-3.2%", "5 percent" or "5 percentage points"."""
    if not text:
        return []
    return [float(match.group("number")) for match in _PERCENT_PATTERN.finditer(text)]


def extract_temperatures(text: str) -> list[float]:
    """Extract Celsius readings such as "-2°C", "3 degrees Celsius" or "5C"."""
    if not text:
        return []
    return [float(match.group("number")) for match in _TEMPERATURE_PATTERN.finditer(text)]


def extract_plain_numbers(
    text: str,
    domain: ValueDomain,
    tolerance_ratio: float = 0.1
) -> list[float]:
    """
    Extract bare numbers that fall inside the domain plus tolerance.

    Unit-less text is full of unrelated numbers (dates, counts, ages); only
    plausible outcome values are kept.

    Args:
        text: Free text
        domain: Market value domain
        tolerance_ratio: Share of the domain span accepted outside it

    Returns:
        Accepted values in order of appearance
    """
    if not text:
        return []

    tolerance = domain_tolerance(domain, tolerance_ratio)
    values: list[float] = []

    for token in _NUMBER_PATTERN.findall(text):
        value = float(token)
        if is_within_domain(value, domain, tolerance):
            values.append(value)

    return values
