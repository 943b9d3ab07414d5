"""
Market-level oracle orchestration.

This module seeds the oracle request of a new market and runs the periodic
sync pass over stored markets: each unresolved AI market whose deadline has
passed, and that has not been checked within the recheck interval, gets one
oracle check. Only real changes are written back.
"""

import logging
import math
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from oracle.ai_oracle import check_outcome
from oracle.config import OracleConfig
from oracle.models import (
    PENDING,
    Market,
    MarketOracleState,
    NewMarketMetadata,
    OracleOutcome,
    OutcomeOption,
    OutcomeRequest,
    OutcomeVerdict,
)
from oracle.storage import MarketStore, Storage
from oracle.utils import parse_timestamp
from oracle.value_domain import suggest_value_domain

# Configure module logger
logger = logging.getLogger(__name__)

COMMON_POSITIVE_KEYWORDS = (
    "confirmed",
    "announced",
    "completed",
    "approved",
    "successful",
)

COMMON_NEGATIVE_KEYWORDS = (
    "not",
    "cancelled",
    "canceled",
    "denied",
    "failed",
    "postponed",
    "delayed",
    "refused",
)

STOP_WORDS = frozenset({
    "the", "and", "for", "with", "that", "from", "this", "will", "into",
    "have", "been", "after", "over", "when", "what", "does", "your",
    "2024", "2025",
})

_TOKEN_SPLIT = re.compile(r"[^a-z0-9%]+")


@dataclass(frozen=True)
class SyncResult:
    """
    Result of one sync pass.

    Attributes:
        markets: Every market, updated where a check ran
        updated: Whether anything changed and was written back
    """
    markets: list[Market]
    updated: bool


def create_default_ai_oracle_state(metadata: NewMarketMetadata) -> MarketOracleState:
    """
    Seed the oracle state for a newly created market.

    Keywords come from the title (stop words removed) and the category, with
    generic positive boosters for YES and negated forms plus negative boosters
    for NO.

    Args:
        metadata: Fields of the new market

    Returns:
        Pending MarketOracleState
    """
    title = metadata.title.strip()
    criteria = (metadata.description or "").strip() or (
        f"Resolve to YES if \"{title}\" occurs as described, otherwise resolve to NO."
    )

    primary, negative = extract_keywords(title, metadata.category)

    domain = metadata.domain
    if domain is None or not domain.is_valid():
        domain = suggest_value_domain(
            title,
            metadata.unit,
            description=metadata.description,
            resolution_criteria=criteria,
            category=metadata.category,
        )

    request = OutcomeRequest(
        market_id=metadata.id,
        question=title,
        resolution_criteria=criteria,
        resolution_deadline=parse_timestamp(metadata.expiry),
        options=(
            OutcomeOption(
                id="yes",
                label="YES",
                keywords=primary + COMMON_POSITIVE_KEYWORDS,
            ),
            OutcomeOption(
                id="no",
                label="NO",
                keywords=primary + negative + COMMON_NEGATIVE_KEYWORDS,
            ),
        ),
        unit=metadata.unit,
        domain=domain,
        locale="en-US",
    )

    return MarketOracleState(request=request, type="ai", status="pending")


def extract_keywords(title: str, category: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """
    Split a title into search keywords.

    Args:
        title: Market title
        category: Market category, added as a keyword when present

    Returns:
        (primary keywords, negated keywords) in first-seen order
    """
    tokens: dict[str, None] = {}
    for token in _TOKEN_SPLIT.split(title.lower()):
        if len(token) > 2 and token not in STOP_WORDS:
            tokens.setdefault(token, None)

    if category:
        tokens.setdefault(category.lower(), None)

    primary = tuple(tokens)
    negative = tuple(f"no {token}" for token in primary) + tuple(f"not {token}" for token in primary)
    return primary, negative


def has_market_resolved(market: Market) -> bool:
    """True once the market or its oracle state holds a non-PENDING outcome."""
    if market.resolved_outcome is not None and market.resolved_outcome != PENDING:
        return True

    oracle = market.oracle
    if oracle and oracle.resolved_outcome is not None and oracle.resolved_outcome != PENDING:
        return True

    return False


def get_resolved_outcome(market: Market) -> Optional[OracleOutcome]:
    """Return the market's resolved outcome, falling back to the oracle state."""
    if market.resolved_outcome is not None:
        return market.resolved_outcome
    if market.oracle:
        return market.oracle.resolved_outcome
    return None


def effective_deadline(market: Market) -> Optional[datetime]:
    """
    Deadline after which the market may be checked.

    Uses the request deadline, else ``resolves_at``, else ``expiry``.
    """
    if market.oracle and market.oracle.request.resolution_deadline:
        return market.oracle.request.resolution_deadline

    return parse_timestamp(market.resolves_at) or parse_timestamp(market.expiry)


def is_due_for_check(market: Market, now: datetime, config: OracleConfig) -> bool:
    """
    Decide whether a market gets an oracle check in this pass.

    Args:
        market: Stored market
        now: Current time (aware)
        config: Oracle configuration (recheck interval)

    Returns:
        True for unresolved AI markets past their deadline and not checked recently
    """
    if has_market_resolved(market):
        return False

    oracle = market.oracle
    if oracle is None or oracle.type != "ai":
        return False

    last_checked = parse_timestamp(oracle.last_checked_at)
    if last_checked and now - last_checked < config.recheck_interval:
        return False

    deadline = effective_deadline(market)
    if deadline is None or deadline > now:
        return False

    return True


def apply_verdict(market: Market, verdict: OutcomeVerdict, checked_at: str) -> Market:
    """
    Record a successful check on a market.

    A non-PENDING verdict resolves the market and its oracle state.

    Args:
        market: Market that was checked
        verdict: Verdict of the check
        checked_at: ISO timestamp of the check

    Returns:
        Updated market
    """
    oracle = market.oracle
    resolved = not verdict.is_pending
    resolved_outcome = verdict.outcome if resolved else None

    next_oracle = replace(
        oracle,
        status="resolved" if resolved else "pending",
        last_checked_at=checked_at,
        last_verdict=verdict,
        resolved_outcome=resolved_outcome,
        error=None,
    )

    resolution_confidence = market.resolution_confidence
    if resolved:
        resolution_confidence = min(100, max(0, math.floor(verdict.confidence * 100 + 0.5)))

    return replace(
        market,
        oracle=next_oracle,
        resolved_outcome=resolved_outcome if resolved else market.resolved_outcome,
        resolution_confidence=resolution_confidence,
    )


def sync_stored_markets_with_oracle(
    markets: Optional[Sequence[Market]] = None,
    store: Optional[MarketStore] = None,
    config: Optional[OracleConfig] = None,
    now: Optional[datetime] = None,
    checker: Callable[[OutcomeRequest, OracleConfig], OutcomeVerdict] = check_outcome
) -> SyncResult:
    """
    Run one oracle pass over the stored markets.

    Markets are checked one at a time. A failing check is recorded on that
    market's oracle state and never aborts the pass. Only the markets that
    changed are written back.

    Args:
        markets: Markets to process. If None, read from the store
        store: Market store. If None, uses the default SQLite Storage
        config: Oracle configuration. If None, built from the environment
        now: Current time; defaults to the wall clock
        checker: Oracle check function

    Returns:
        SyncResult with the resulting markets and whether they were written
    """
    config = config or OracleConfig.from_env()
    now = now or datetime.now(timezone.utc)
    checked_at = now.isoformat()

    if markets is None:
        store = store or Storage()
        markets = store.read_markets()

    markets = list(markets)
    if not markets:
        return SyncResult(markets=markets, updated=False)

    next_markets: list[Market] = []
    checked = 0

    for market in markets:
        if not is_due_for_check(market, now, config):
            next_markets.append(market)
            continue

        checked += 1
        request = replace(market.oracle.request, resolution_deadline=effective_deadline(market))

        try:
            verdict = checker(request, config)
        except Exception as e:
            logger.error(f"Oracle check failed for market {market.id}: {e}", exc_info=True)
            next_markets.append(replace(
                market,
                oracle=replace(market.oracle, last_checked_at=checked_at, error=str(e) or type(e).__name__),
            ))
            continue

        next_market = apply_verdict(market, verdict, checked_at)
        if not verdict.is_pending:
            logger.info(
                f"Market {market.id} resolved to {verdict.outcome} "
                f"(confidence {verdict.confidence:.2f})"
            )
        next_markets.append(next_market)

    updated = any(after != before for before, after in zip(markets, next_markets))

    logger.info(f"Oracle sync checked {checked} of {len(markets)} markets (updated: {updated})")

    if not updated:
        return SyncResult(markets=next_markets, updated=False)

    # Only changed rows are written; untouched rows keep their stored payload and version
    changed = [after for before, after in zip(markets, next_markets) if after != before]

    store = store or Storage()
    written = {market.id: market for market in store.write_markets(changed)}
    return SyncResult(markets=[written.get(m.id, m) for m in next_markets], updated=True)
