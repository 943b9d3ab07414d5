from conftest import FakeResponse, FakeSession, build_rss, make_config
from oracle.ai_oracle import check_outcome
from oracle.models import PENDING, OutcomeRequest, ValueDomain
from oracle.utils import parse_timestamp

BTC_ITEMS = [
    {
        "title": "Bitcoin closes at $100,000",
        "link": f"https://www.source{i}.com/btc",
        "description": "Exchange data confirmed the close",
    }
    for i in range(3)
]

REQUEST = OutcomeRequest(
    market_id="btc-eoy",
    question="Where will Bitcoin close on Dec 31?",
    resolution_deadline=parse_timestamp("2025-01-01T00:00:00Z"),
    unit="USD",
    domain=ValueDomain(0, 200_000),
)


def feed_session(post_handler=None) -> FakeSession:
    return FakeSession(
        get_handler=lambda url, **kwargs: FakeResponse(text=build_rss(BTC_ITEMS)),
        post_handler=post_handler,
    )


def test_no_signals_returns_pending():
    verdict = check_outcome(REQUEST, make_config(FakeSession()))

    assert verdict.outcome == PENDING
    assert verdict.confidence == 0
    assert verdict.signals == ()


def test_heuristic_verdict_without_llm_key():
    session = feed_session()

    verdict = check_outcome(REQUEST, make_config(session))

    assert verdict.outcome == 50
    assert verdict.confidence > 0.6
    # question + market id
    assert len(verdict.signals) == 6
    assert session.post_calls == []


def test_llm_failure_falls_back_to_heuristic(no_sleep):
    session = feed_session(lambda url, **kwargs: FakeResponse(status_code=502, text="bad gateway"))
    config = make_config(session, llm_api_key="sk-test", llm_max_retries=2)

    verdict = check_outcome(REQUEST, config)

    assert len(session.post_calls) == 3
    assert verdict.outcome == 50
    assert verdict.reasoning.startswith("Estimated outcome index 50")


def test_llm_verdict_overrides_heuristic():
    payload = {"output": [{"content": [{
        "type": "output_text",
        "text": '{"outcome": 120000, "confidence": 0.95, "reasoning": "Closing price confirmed."}',
    }]}]}
    session = feed_session(lambda url, **kwargs: FakeResponse(json_data=payload))

    verdict = check_outcome(REQUEST, make_config(session, llm_api_key="sk-test"))

    # numeric outcomes are mapped through the market's value domain
    assert verdict.outcome == 60
    assert verdict.confidence == 0.95
    assert verdict.reasoning == "Closing price confirmed."
    assert len(verdict.signals) == 6
    assert len(session.post_calls) == 1


def test_llm_skipped_when_no_signals():
    session = FakeSession()

    verdict = check_outcome(REQUEST, make_config(session, llm_api_key="sk-test"))

    assert verdict.outcome == PENDING
    assert session.post_calls == []


def test_oversized_llm_outcome_falls_back_to_heuristic(no_sleep):
    text = '{"outcome": 1' + "0" * 400 + ', "confidence": 0.9, "reasoning": "x"}'
    payload = {"output": [{"content": [{"type": "output_text", "text": text}]}]}
    session = feed_session(lambda url, **kwargs: FakeResponse(json_data=payload))

    verdict = check_outcome(REQUEST, make_config(session, llm_api_key="sk-test"))

    assert verdict.outcome == 50
    assert verdict.reasoning.startswith("Estimated outcome index 50")


def test_unexpected_llm_error_falls_back_to_heuristic():
    def explode(url, **kwargs):
        raise RuntimeError("client bug")

    session = feed_session(explode)

    verdict = check_outcome(REQUEST, make_config(session, llm_api_key="sk-test"))

    assert len(session.post_calls) == 1
    assert verdict.outcome == 50
