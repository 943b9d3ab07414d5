import json
from datetime import timedelta
from typing import Any, Callable, Optional

import pytest

from oracle.config import OracleConfig
from oracle.models import OutcomeSignal

FEED_BASES = ["https://feed-a.test/rss?q=", "https://feed-b.test/rss?q="]


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", json_data: Any = None):
        self.status_code = status_code
        self.text = text
        self._json_data = json_data

    def json(self) -> Any:
        if self._json_data is not None:
            return self._json_data
        return json.loads(self.text)


class FakeSession:
    """Stand-in for requests.Session that records calls and delegates to handlers."""

    def __init__(
        self,
        get_handler: Optional[Callable[..., FakeResponse]] = None,
        post_handler: Optional[Callable[..., FakeResponse]] = None,
    ):
        self.get_handler = get_handler or (lambda url, **kwargs: FakeResponse(text=build_rss([])))
        self.post_handler = post_handler or (lambda url, **kwargs: FakeResponse(status_code=500, text="boom"))
        self.get_calls: list[dict[str, Any]] = []
        self.post_calls: list[dict[str, Any]] = []

    def get(self, url, **kwargs):
        self.get_calls.append({"url": url, **kwargs})
        return self.get_handler(url, **kwargs)

    def post(self, url, **kwargs):
        self.post_calls.append({"url": url, **kwargs})
        return self.post_handler(url, **kwargs)


def build_rss(items: list[dict[str, str]]) -> str:
    blocks = []
    for item in items:
        blocks.append(
            "<item>"
            f"<title>{item.get('title', '')}</title>"
            f"<link>{item.get('link', 'https://www.example.com/story')}</link>"
            f"<pubDate>{item.get('pubDate', 'Mon, 06 Jan 2025 10:00:00 GMT')}</pubDate>"
            f"<description>{item.get('description', '')}</description>"
            "</item>"
        )
    return f"<rss><channel><title>News</title>{''.join(blocks)}</channel></rss>"


def make_signal(
    headline: str,
    snippet: str = "",
    confidence: float = 0.8,
    source: str = "example.com",
) -> OutcomeSignal:
    return OutcomeSignal(
        source=source,
        url=f"https://{source}/story",
        headline=headline,
        snippet=snippet,
        published_at="Mon, 06 Jan 2025 10:00:00 GMT",
        confidence=confidence,
    )


def make_config(session: Optional[FakeSession] = None, **overrides: Any) -> OracleConfig:
    values: dict[str, Any] = {
        "http_client": session or FakeSession(),
        "feed_bases": list(FEED_BASES),
        "max_signals_per_query": 8,
        "resolution_threshold": 0.6,
        "llm_api_key": None,
        "llm_base_url": "https://llm.test",
        "llm_model": "test-model",
        "llm_max_retries": 2,
        "llm_backoff_seconds": 0.0,
        "request_timeout": 5,
        "recheck_interval": timedelta(minutes=5),
        "domain_tolerance_ratio": 0.1,
        "median_blend_weight": 0.5,
        "user_agent": "oracle-tests",
    }
    values.update(overrides)
    return OracleConfig(**values)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def config(session) -> OracleConfig:
    return make_config(session)


@pytest.fixture
def no_sleep(monkeypatch) -> list[float]:
    sleeps: list[float] = []
    monkeypatch.setattr("oracle.utils.time.sleep", lambda seconds: sleeps.append(seconds))
    return sleeps
