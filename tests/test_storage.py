from dataclasses import replace

import pytest

from oracle.errors import StaleMarketError
from oracle.models import Market, MarketOracleState, OutcomeRequest, ValueDomain
from oracle.storage import Storage
from oracle.utils import parse_timestamp


@pytest.fixture
def storage(tmp_path):
    return Storage(tmp_path / "markets.db")


def make_market(market_id="m1", **fields):
    request = OutcomeRequest(
        market_id=market_id,
        question="Highest temperature in Berlin?",
        resolution_deadline=parse_timestamp("2025-07-01T00:00:00Z"),
        unit="°C",
        domain=ValueDomain(-20, 60),
    )
    return Market(
        id=market_id,
        title="Berlin high",
        category="weather",
        unit="°C",
        oracle=MarketOracleState(request=request),
        **fields,
    )


def test_save_and_get_round_trip(storage):
    market = make_market(extra={"liquidity": 5000, "tags": ["weather"]})

    assert storage.save_market(market) is True
    stored = storage.get_market("m1")

    assert stored == replace(market, version=1)
    assert stored.extra == {"liquidity": 5000, "tags": ["weather"]}
    assert stored.oracle.request.resolution_deadline == parse_timestamp("2025-07-01T00:00:00Z")


def test_get_missing_market(storage):
    assert storage.get_market("nope") is None


def test_read_markets_in_insertion_order(storage):
    storage.write_markets([make_market("a"), make_market("b")])

    assert [market.id for market in storage.read_markets()] == ["a", "b"]


def test_write_markets_bumps_versions(storage):
    written = storage.write_markets([make_market("a")])
    assert written[0].version == 1

    rewritten = storage.write_markets([replace(written[0], resolved_outcome=12)])
    assert rewritten[0].version == 2
    assert storage.get_market("a").resolved_outcome == 12


def test_stale_write_is_rejected_atomically(storage):
    storage.write_markets([make_market("a"), make_market("b")])
    first, second = storage.read_markets()

    # another writer moves "b" forward
    storage.write_markets([replace(second, title="changed elsewhere")])

    with pytest.raises(StaleMarketError) as excinfo:
        storage.write_markets([replace(first, resolved_outcome=1), replace(second, resolved_outcome=2)])

    assert excinfo.value.market_id == "b"
    assert excinfo.value.expected_version == 1
    assert excinfo.value.stored_version == 2
    assert storage.get_market("a").resolved_outcome is None
    assert storage.get_market("a").version == 1


def test_save_market_reports_stale_version(storage):
    storage.save_market(make_market())

    assert storage.save_market(replace(make_market(), title="old copy")) is False
