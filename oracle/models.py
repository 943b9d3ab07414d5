"""
Data models for the market-resolution oracle.

This module defines the core dataclasses used throughout the application
for representing oracle requests, collected signals, verdicts, and the
oracle state stored on each market record.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from oracle.utils import format_timestamp, parse_timestamp

PENDING = "PENDING"
INVALID = "INVALID"

MAX_OUTCOME_INDEX = 100

# Outcome index in [0, 100] or one of the PENDING / INVALID sentinels
OracleOutcome = Union[int, str]


class Unit(Enum):
    """Closed set of value units the extractor knows how to read."""
    CURRENCY = "currency"
    PERCENT = "percent"
    TEMPERATURE = "temperature"
    GENERIC = "generic"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "Unit":
        """
        Resolve a free-form market unit string to a Unit.

        Args:
            raw: Unit as stored on the market (e.g. "USD", "%", "°C")

        Returns:
            Matching Unit; GENERIC for anything unrecognised
        """
        normalized = (raw or "").strip().lower()

        if normalized in ("usd", "$"):
            return cls.CURRENCY

        if normalized in ("%", "percent"):
            return cls.PERCENT

        if normalized in ("°c", "celsius", "degc", "°") or "celsius" in normalized:
            return cls.TEMPERATURE

        return cls.GENERIC


@dataclass(frozen=True)
class ValueDomain:
    """Real-world [min, max] range of a market outcome."""
    min: float
    max: float

    @property
    def span(self) -> float:
        return self.max - self.min

    def is_valid(self) -> bool:
        return (
            math.isfinite(self.min)
            and math.isfinite(self.max)
            and self.max > self.min
        )

    def to_dict(self) -> dict[str, float]:
        return {"min": self.min, "max": self.max}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["ValueDomain"]:
        """Build a domain from a dict, returning None for missing or unparsable input."""
        if not data:
            return None
        try:
            return cls(min=float(data["min"]), max=float(data["max"]))
        except (KeyError, TypeError, ValueError):
            return None


@dataclass(frozen=True)
class OutcomeOption:
    """
    One resolvable option of a market.

    Attributes:
        id: Option identifier (e.g. "yes")
        label: Display label
        keywords: Terms whose presence makes a signal more relevant
    """
    id: str
    label: str
    keywords: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "label": self.label, "keywords": list(self.keywords)}

    @classmethod
    def from_dict(cls, data: dict) -> "OutcomeOption":
        return cls(
            id=str(data.get("id", "")),
            label=str(data.get("label", "")),
            keywords=tuple(str(k) for k in data.get("keywords") or ()),
        )


@dataclass(frozen=True)
class OutcomeRequest:
    """
    Everything the oracle needs to resolve one market.

    Created once when the market is created and reused for every check.

    Attributes:
        market_id: Market identifier
        question: Market question
        resolution_criteria: Free-text resolution rules
        resolution_deadline: Time after which the market may be resolved
        options: Resolvable options with their keywords
        unit: Raw unit string of the market value (e.g. "USD")
        domain: Explicit value domain, if the market defines one
        locale: Locale hint for the market text
    """
    market_id: str
    question: str
    resolution_criteria: Optional[str] = None
    resolution_deadline: Optional[datetime] = None
    options: tuple[OutcomeOption, ...] = ()
    unit: Optional[str] = None
    domain: Optional[ValueDomain] = None
    locale: Optional[str] = None

    @property
    def keywords(self) -> tuple[str, ...]:
        """All option keywords in option order."""
        return tuple(keyword for option in self.options for keyword in option.keywords)

    def to_dict(self) -> dict[str, Any]:
        return {
            "market_id": self.market_id,
            "question": self.question,
            "resolution_criteria": self.resolution_criteria,
            "resolution_deadline": format_timestamp(self.resolution_deadline),
            "options": [option.to_dict() for option in self.options],
            "unit": self.unit,
            "domain": self.domain.to_dict() if self.domain else None,
            "locale": self.locale,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OutcomeRequest":
        return cls(
            market_id=str(data["market_id"]),
            question=str(data.get("question", "")),
            resolution_criteria=data.get("resolution_criteria"),
            resolution_deadline=parse_timestamp(data.get("resolution_deadline")),
            options=tuple(OutcomeOption.from_dict(o) for o in data.get("options") or ()),
            unit=data.get("unit"),
            domain=ValueDomain.from_dict(data.get("domain") or data.get("valueDomain")),
            locale=data.get("locale"),
        )


@dataclass(frozen=True)
class OutcomeSignal:
    """
    One news item bearing on a market's outcome.

    Attributes:
        source: Publisher hostname without "www."
        url: Link to the item
        headline: Plain-text headline
        snippet: Plain-text description, at most 280 characters
        published_at: Publication date as given by the feed
        confidence: Source reliability heuristic in [0, 1]
    """
    source: str
    url: str
    headline: str
    snippet: str
    published_at: Optional[str] = None
    confidence: float = 0.4

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "url": self.url,
            "headline": self.headline,
            "snippet": self.snippet,
            "published_at": self.published_at,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OutcomeSignal":
        return cls(
            source=str(data.get("source", "")),
            url=str(data.get("url", "")),
            headline=str(data.get("headline", "")),
            snippet=str(data.get("snippet", "")),
            published_at=data.get("published_at"),
            confidence=float(data.get("confidence", 0.4)),
        )


@dataclass(frozen=True)
class ValueSample:
    """A domain-clamped value taken from one signal, with its weight."""
    value: float
    weight: float
    signal: OutcomeSignal


@dataclass(frozen=True)
class OutcomeVerdict:
    """
    Result of one oracle check.

    Attributes:
        outcome: Outcome index in [0, 100], PENDING or INVALID
        confidence: Confidence in [0, 1]
        reasoning: Short explanation of the verdict
        decided_at: ISO-8601 UTC timestamp of the decision
        signals: Evidence collected for the check
    """
    outcome: OracleOutcome
    confidence: float
    reasoning: str
    decided_at: str
    signals: tuple[OutcomeSignal, ...] = ()

    @property
    def is_pending(self) -> bool:
        return self.outcome == PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "decided_at": self.decided_at,
            "signals": [signal.to_dict() for signal in self.signals],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OutcomeVerdict":
        return cls(
            outcome=data.get("outcome", PENDING),
            confidence=float(data.get("confidence", 0.0)),
            reasoning=str(data.get("reasoning", "")),
            decided_at=str(data.get("decided_at", "")),
            signals=tuple(OutcomeSignal.from_dict(s) for s in data.get("signals") or ()),
        )


@dataclass(frozen=True)
class MarketOracleState:
    """
    Oracle bookkeeping stored on a market record.

    ``status`` moves from "pending" to "resolved" once and never back.
    """
    request: OutcomeRequest
    type: str = "ai"
    status: str = "pending"
    last_checked_at: Optional[str] = None
    last_verdict: Optional[OutcomeVerdict] = None
    resolved_outcome: Optional[OracleOutcome] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "request": self.request.to_dict(),
            "status": self.status,
            "last_checked_at": self.last_checked_at,
            "last_verdict": self.last_verdict.to_dict() if self.last_verdict else None,
            "resolved_outcome": self.resolved_outcome,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MarketOracleState":
        verdict = data.get("last_verdict")
        return cls(
            request=OutcomeRequest.from_dict(data["request"]),
            type=str(data.get("type", "ai")),
            status=str(data.get("status", "pending")),
            last_checked_at=data.get("last_checked_at"),
            last_verdict=OutcomeVerdict.from_dict(verdict) if verdict else None,
            resolved_outcome=data.get("resolved_outcome"),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class NewMarketMetadata:
    """Market fields available when a new market is created."""
    id: str
    title: str
    category: str = ""
    description: Optional[str] = None
    expiry: Optional[str] = None
    unit: Optional[str] = None
    domain: Optional[ValueDomain] = None


# Fields of a market record interpreted by this package; others go to ``extra``
_MARKET_FIELDS = (
    "id", "title", "category", "description", "expiry", "resolves_at", "unit",
    "domain", "oracle", "resolved_outcome", "resolution_confidence", "version",
)


@dataclass(frozen=True)
class Market:
    """
    A stored market record.

    Only the fields the oracle reads or writes are modelled; everything else
    the surrounding system keeps on the record is carried in ``extra``.
    """
    id: str
    title: str
    category: str = ""
    description: Optional[str] = None
    expiry: Optional[str] = None
    resolves_at: Optional[str] = None
    unit: Optional[str] = None
    domain: Optional[ValueDomain] = None
    oracle: Optional[MarketOracleState] = None
    resolved_outcome: Optional[OracleOutcome] = None
    resolution_confidence: Optional[int] = None
    version: int = 0
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "description": self.description,
            "expiry": self.expiry,
            "resolves_at": self.resolves_at,
            "unit": self.unit,
            "domain": self.domain.to_dict() if self.domain else None,
            "oracle": self.oracle.to_dict() if self.oracle else None,
            "resolved_outcome": self.resolved_outcome,
            "resolution_confidence": self.resolution_confidence,
            "version": self.version,
        })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Market":
        oracle = data.get("oracle")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            category=str(data.get("category") or ""),
            description=data.get("description"),
            expiry=data.get("expiry"),
            resolves_at=data.get("resolves_at"),
            unit=data.get("unit"),
            domain=ValueDomain.from_dict(data.get("domain")),
            oracle=MarketOracleState.from_dict(oracle) if oracle else None,
            resolved_outcome=data.get("resolved_outcome"),
            resolution_confidence=data.get("resolution_confidence"),
            version=int(data.get("version") or 0),
            extra={k: v for k, v in data.items() if k not in _MARKET_FIELDS},
        )
