"""
Heuristic aggregation of news signals into a verdict.

Each signal contributes at most one value: the median of the numbers it
mentions for the market unit. Values are weighted by source confidence and
keyword relevance, then folded into a blend of the weighted mean and the
weighted median. The resulting confidence decides between a resolved index
and PENDING.
"""

import math
import statistics
from dataclasses import dataclass
from functools import reduce
from typing import Optional, Sequence

from oracle.config import OracleConfig
from oracle.models import (
    PENDING,
    OutcomeRequest,
    OutcomeSignal,
    OutcomeVerdict,
    Unit,
    ValueDomain,
    ValueSample,
)
from oracle.utils import current_utc_timestamp
from oracle.value_domain import (
    clamp_to_domain,
    domain_tolerance,
    format_value,
    is_within_domain,
    normalize_to_index,
)
from oracle.value_extractor import extract_values

MIN_CONFIDENCE_SAMPLES = 3
MAX_KEYWORD_HITS = 5
KEYWORD_BOOST_PER_HIT = 0.1
MIN_SAMPLE_WEIGHT = 0.1
FALLBACK_SIGNAL_CONFIDENCE = 0.5
SUMMARY_SAMPLES = 3

NO_SIGNALS_REASONING = "No reliable signals matching the market unit were detected."
BELOW_THRESHOLD_REASONING = (
    "Signals suggest a tentative value, but confidence is below the resolution threshold."
)


@dataclass(frozen=True)
class NumericEstimate:
    """
    Aggregated estimate for one check.

    Attributes:
        outcome_index: Estimate mapped onto the 0-100 index
        estimated_value: Estimate in market units
        confidence: Confidence in [0, 1]
        summary: Top samples by weight, for reasoning text
        sample_count: Number of signals that contributed a value
    """
    outcome_index: int
    estimated_value: float
    confidence: float
    summary: str
    sample_count: int


def build_heuristic_verdict(
    request: OutcomeRequest,
    signals: Sequence[OutcomeSignal],
    unit: Unit,
    domain: ValueDomain,
    config: OracleConfig
) -> OutcomeVerdict:
    """
    Build a verdict from signals without LLM assistance.

    Args:
        request: Oracle request for the market
        signals: Collected signals
        unit: Unit resolved for this check
        domain: Value domain resolved for this check
        config: Oracle configuration

    Returns:
        Resolved verdict, or PENDING when there is no estimate or its
        confidence is below the resolution threshold
    """
    signal_tuple = tuple(signals)
    estimate = estimate_numeric_outcome(request, signal_tuple, unit, domain, config)

    if estimate is None:
        return OutcomeVerdict(
            outcome=PENDING,
            confidence=0.0,
            reasoning=NO_SIGNALS_REASONING,
            decided_at=current_utc_timestamp(),
            signals=signal_tuple,
        )

    if estimate.confidence < config.resolution_threshold:
        return OutcomeVerdict(
            outcome=PENDING,
            confidence=estimate.confidence,
            reasoning=BELOW_THRESHOLD_REASONING,
            decided_at=current_utc_timestamp(),
            signals=signal_tuple,
        )

    formatted = format_value(estimate.estimated_value, request.unit)
    reasoning = (
        f"Estimated outcome index {estimate.outcome_index} (~{formatted}) based on signals "
        f"from {estimate.summary or 'available sources'}."
    )

    return OutcomeVerdict(
        outcome=estimate.outcome_index,
        confidence=estimate.confidence,
        reasoning=reasoning,
        decided_at=current_utc_timestamp(),
        signals=signal_tuple,
    )


def estimate_numeric_outcome(
    request: OutcomeRequest,
    signals: Sequence[OutcomeSignal],
    unit: Unit,
    domain: ValueDomain,
    config: OracleConfig
) -> Optional[NumericEstimate]:
    """
    Fold signal values into a single confidence-weighted estimate.

    Args:
        request: Oracle request for the market
        signals: Collected signals
        unit: Unit resolved for this check
        domain: Value domain resolved for this check
        config: Oracle configuration

    Returns:
        NumericEstimate, or None if no signal yielded a usable value
    """
    samples = collect_samples(request, signals, unit, domain, config)
    if not samples:
        return None

    total_weight = sum(sample.weight for sample in samples)
    if total_weight <= 0:
        return None

    weighted_mean = sum(sample.value * sample.weight for sample in samples) / total_weight
    weighted_median = compute_weighted_median(samples)
    blend = config.median_blend_weight
    estimated_value = (1 - blend) * weighted_mean + blend * weighted_median

    average_weight = min(1.0, total_weight / len(samples))
    support_factor = min(1.0, len(samples) / MIN_CONFIDENCE_SAMPLES)
    confidence = max(0.0, min(1.0, average_weight * 0.6 + support_factor * 0.4))

    return NumericEstimate(
        outcome_index=normalize_to_index(estimated_value, domain),
        estimated_value=estimated_value,
        confidence=confidence,
        summary=summarize_samples(samples, request.unit),
        sample_count=len(samples),
    )


def collect_samples(
    request: OutcomeRequest,
    signals: Sequence[OutcomeSignal],
    unit: Unit,
    domain: ValueDomain,
    config: OracleConfig
) -> list[ValueSample]:
    """
    Turn signals into weighted, domain-clamped samples.

    Signals without values for the unit, or whose representative value is
    outside the domain plus tolerance, are dropped.
    """
    keywords = request.keywords
    tolerance = domain_tolerance(domain, config.domain_tolerance_ratio)
    samples: list[ValueSample] = []

    for signal in signals:
        text = f"{signal.headline or ''} {signal.snippet or ''}"
        extracted = extract_values(text, unit, domain, config.domain_tolerance_ratio)
        if not extracted:
            continue

        representative = statistics.median(extracted)
        if not is_within_domain(representative, domain, tolerance):
            continue

        samples.append(ValueSample(
            value=clamp_to_domain(representative, domain),
            weight=signal_weight(signal, text, keywords),
            signal=signal,
        ))

    return samples


def signal_weight(signal: OutcomeSignal, text: str, keywords: Sequence[str]) -> float:
    """Source confidence scaled by keyword relevance, floored at 0.1."""
    confidence = signal.confidence
    if not isinstance(confidence, (int, float)) or not math.isfinite(confidence):
        confidence = FALLBACK_SIGNAL_CONFIDENCE

    return max(MIN_SAMPLE_WEIGHT, confidence * keyword_relevance(text, keywords))


def keyword_relevance(text: str, keywords: Sequence[str]) -> float:
    """
    Relevance multiplier from case-insensitive keyword hits.

    Args:
        text: Signal text
        keywords: Option keywords; blank entries are ignored

    Returns:
        1.0 plus 0.1 per hit, counting at most 5 hits; 1.0 without keywords
    """
    if not keywords:
        return 1.0

    lower = text.lower()
    hits = reduce(
        lambda count, keyword: count + (1 if keyword and keyword in lower else 0),
        (keyword.strip().lower() for keyword in keywords),
        0,
    )

    return 1.0 + min(hits, MAX_KEYWORD_HITS) * KEYWORD_BOOST_PER_HIT


def compute_weighted_median(samples: Sequence[ValueSample]) -> float:
    """
    First value, in ascending order, whose cumulative weight reaches half the total.

    Args:
        samples: Non-empty weighted samples

    Returns:
        Weighted median value
    """
    ordered = sorted(samples, key=lambda sample: sample.value)
    half_weight = sum(sample.weight for sample in ordered) / 2
    cumulative = 0.0

    for sample in ordered:
        cumulative += sample.weight
        if cumulative >= half_weight:
            return sample.value

    return ordered[-1].value if ordered else 0.0


def summarize_samples(samples: Sequence[ValueSample], unit: Optional[str]) -> str:
    """Describe the top samples by weight as "source ~value (weight)"."""
    top = sorted(samples, key=lambda sample: sample.weight, reverse=True)[:SUMMARY_SAMPLES]
    return "; ".join(
        f"{sample.signal.source or 'unknown'} ~{format_value(sample.value, unit)} "
        f"({sample.weight:.2f})"
        for sample in top
    )
