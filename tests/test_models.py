import pytest

from oracle.config import OracleConfig
from oracle.models import (
    INVALID,
    PENDING,
    Market,
    MarketOracleState,
    OutcomeOption,
    OutcomeRequest,
    OutcomeVerdict,
    Unit,
    ValueDomain,
)
from oracle.utils import parse_timestamp


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("USD", Unit.CURRENCY),
        ("$", Unit.CURRENCY),
        (" % ", Unit.PERCENT),
        ("percent", Unit.PERCENT),
        ("°C", Unit.TEMPERATURE),
        ("degC", Unit.TEMPERATURE),
        ("degrees celsius", Unit.TEMPERATURE),
        ("goals", Unit.GENERIC),
        (None, Unit.GENERIC),
    ],
)
def test_unit_from_raw(raw, expected):
    assert Unit.from_raw(raw) is expected


def test_value_domain_validity():
    assert ValueDomain(0, 1).is_valid()
    assert not ValueDomain(1, 1).is_valid()
    assert not ValueDomain(0, float("inf")).is_valid()
    assert ValueDomain.from_dict({"min": "1", "max": 2}) == ValueDomain(1, 2)
    assert ValueDomain.from_dict({"min": 1}) is None
    assert ValueDomain.from_dict(None) is None


def test_request_keywords_follow_option_order():
    request = OutcomeRequest(
        market_id="m",
        question="q",
        options=(OutcomeOption("yes", "YES", ("a", "b")), OutcomeOption("no", "NO", ("c",))),
    )
    assert request.keywords == ("a", "b", "c")


def test_verdict_pending_flag():
    assert OutcomeVerdict(PENDING, 0.0, "", "").is_pending
    assert not OutcomeVerdict(INVALID, 0.0, "", "").is_pending
    assert not OutcomeVerdict(0, 0.9, "", "").is_pending


def test_market_from_dict_keeps_unknown_fields():
    data = {
        "id": "m1",
        "title": "Rain in Paris",
        "liquidity": 10,
        "oracle": {
            "type": "ai",
            "request": {
                "market_id": "m1",
                "question": "Rain in Paris?",
                "resolution_deadline": "2025-03-01T00:00:00Z",
                "options": [{"id": "yes", "label": "YES", "keywords": ["rain"]}],
            },
            "last_verdict": {"outcome": 0, "confidence": 0.7, "reasoning": "dry", "decided_at": "t"},
        },
        "resolved_outcome": 0,
    }

    market = Market.from_dict(data)

    assert market.extra == {"liquidity": 10}
    assert market.version == 0
    assert isinstance(market.oracle, MarketOracleState)
    assert market.oracle.request.resolution_deadline == parse_timestamp("2025-03-01T00:00:00Z")
    assert market.oracle.last_verdict.outcome == 0
    assert market.to_dict()["liquidity"] == 10
    assert market.to_dict()["oracle"]["request"]["options"][0]["keywords"] == ["rain"]


def test_oracle_config_from_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("OPENAI_MODEL", "env-model")

    config = OracleConfig.from_env(llm_model="override", http_client=object())

    assert config.llm_api_key == "sk-env"
    assert config.llm_model == "override"
    assert config.max_signals_per_query >= 1


def test_request_from_dict_accepts_value_domain_key():
    request = OutcomeRequest.from_dict({
        "market_id": "m",
        "question": "q",
        "valueDomain": {"min": -5, "max": 5},
    })

    assert request.domain == ValueDomain(-5, 5)
