"""
News signal collector for market resolution.

This module builds search queries for a market and turns a public news RSS
feed into OutcomeSignal objects. It performs no value extraction or
estimation - only evidence gathering.
"""

import html
import re
from typing import Optional
from urllib.parse import quote, urlparse

from requests.exceptions import RequestException

from oracle.config import OracleConfig
from oracle.errors import FeedFetchError
from oracle.models import OutcomeRequest, OutcomeSignal

SNIPPET_MAX_CHARS = 280

_ITEM_PATTERN = re.compile(r"<item>(.*?)</item>", re.DOTALL)
_CDATA_PATTERN = re.compile(r"<!\[CDATA\[|\]\]>")
_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")

# Checked in order; the first phrase found decides the confidence
_CONFIDENCE_PHRASES: tuple[tuple[tuple[str, ...], float], ...] = (
    (("according to official results",), 1.0),
    (("confirmed", "announced"), 0.8),
    (("reported", "sources say"), 0.6),
)
_DEFAULT_SIGNAL_CONFIDENCE = 0.4


def collect_signals(request: OutcomeRequest, config: OracleConfig) -> list[OutcomeSignal]:
    """
    Collect news signals for every search query of a market.

    A failing query is logged and skipped; it never fails the check.

    Args:
        request: Oracle request for the market
        config: Oracle configuration

    Returns:
        Signals in query order, capped in total at max_signals_per_query
            times the number of queries; one query may fill the whole budget
    """
    queries = build_search_queries(request)
    limit = config.max_signals_per_query * len(queries)
    signals: list[OutcomeSignal] = []

    for query in queries:
        if len(signals) >= limit:
            break

        try:
            results = fetch_news_signals(query, config)
        except FeedFetchError as e:
            config.logger.warning(f"Failed to fetch signals for query \"{query}\": {e}")
            continue

        signals.extend(results[:limit - len(signals)])

    config.logger.debug(
        f"Collected {len(signals)} signals for market {request.market_id} "
        f"from {len(queries)} queries"
    )
    return signals


def build_search_queries(request: OutcomeRequest) -> list[str]:
    """
    Build ordered search queries for a market.

    Order: question, resolution criteria, joined option keywords, and the
    market id to tell apart markets that ask the same question.

    Args:
        request: Oracle request for the market

    Returns:
        Non-blank query strings
    """
    queries = [request.question.strip()]

    if request.resolution_criteria:
        queries.append(request.resolution_criteria.strip())

    keywords = [keyword for keyword in request.keywords if keyword]
    if keywords:
        queries.append(" ".join(keywords))

    queries.append(request.market_id)

    return [query for query in queries if query and query.strip()]


def fetch_news_signals(query: str, config: OracleConfig) -> list[OutcomeSignal]:
    """
    Fetch and parse the news feed for one query.

    Each configured base is tried in order. A base that errors, answers with
    a non-2xx status, or returns a feed without items falls through to the
    next one.

    Args:
        query: Search query
        config: Oracle configuration

    Returns:
        Parsed signals from the first base that yielded any

    Raises:
        FeedFetchError: If no base produced signals
    """
    encoded = quote(query, safe="")
    last_error: Optional[Exception] = None

    for base in config.feed_bases:
        url = f"{base}{encoded}"
        try:
            response = config.http_client.get(
                url,
                headers={"User-Agent": config.user_agent},
                timeout=config.request_timeout,
            )
        except RequestException as e:
            last_error = e
            config.logger.debug(f"Feed request to {url} failed: {e}")
            continue

        if not 200 <= response.status_code < 300:
            last_error = FeedFetchError(f"Unexpected status {response.status_code} for {url}")
            continue

        signals = parse_news_feed(response.text)
        if signals:
            return signals

    if last_error is None:
        raise FeedFetchError(f"No signals returned for query \"{query}\" from any feed base")

    if isinstance(last_error, FeedFetchError):
        raise last_error

    raise FeedFetchError(str(last_error)) from last_error


def parse_news_feed(xml: str) -> list[OutcomeSignal]:
    """
    Parse RSS ``<item>`` blocks into signals.

    Tolerates CDATA sections and HTML embedded in descriptions.

    Args:
        xml: Raw RSS document

    Returns:
        One signal per item, in feed order
    """
    signals: list[OutcomeSignal] = []

    for raw_item in _ITEM_PATTERN.findall(xml or ""):
        headline = _extract_tag(raw_item, "title")
        link = _strip_cdata(_extract_tag(raw_item, "link"))
        published_at = _strip_cdata(_extract_tag(raw_item, "pubDate"))
        description = html.unescape(_strip_cdata(_extract_tag(raw_item, "description")))

        signals.append(OutcomeSignal(
            source=extract_source(link),
            url=link,
            headline=strip_html(html.unescape(_strip_cdata(headline))),
            snippet=strip_html(description)[:SNIPPET_MAX_CHARS],
            published_at=published_at or None,
            confidence=estimate_signal_confidence(description),
        ))

    return signals


def extract_source(link: str) -> str:
    """Return the link's hostname without a leading "www.", or "unknown"."""
    try:
        hostname = urlparse(link).hostname
    except ValueError:
        return "unknown"

    if not hostname:
        return "unknown"

    return re.sub(r"^www\.", "", hostname)


def estimate_signal_confidence(description: str) -> float:
    """
    Score how authoritative a news item sounds.

    Args:
        description: Raw item description (may contain HTML)

    Returns:
        1.0 for official results, 0.8 for confirmed/announced,
        0.6 for reported/sources say, 0.4 otherwise
    """
    lower = description.lower()

    for phrases, confidence in _CONFIDENCE_PHRASES:
        if any(phrase in lower for phrase in phrases):
            return confidence

    return _DEFAULT_SIGNAL_CONFIDENCE


def strip_html(value: str) -> str:
    """Remove tags and collapse whitespace."""
    return _WHITESPACE_PATTERN.sub(" ", _TAG_PATTERN.sub("", value)).strip()


def _strip_cdata(value: str) -> str:
    return _CDATA_PATTERN.sub("", value).strip()


def _extract_tag(fragment: str, tag: str) -> str:
    match = re.search(rf"<{tag}>(.*?)</{tag}>", fragment, re.DOTALL | re.IGNORECASE)
    return match.group(1) if match else ""
