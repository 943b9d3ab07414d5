from datetime import datetime, timezone

import pytest

from oracle.utils import (
    Exhausted,
    Succeeded,
    extract_json_text,
    is_finite_number,
    linear_backoff,
    parse_timestamp,
    retry_with_backoff,
)


def flaky(failures, exc=ValueError):
    calls = {"count": 0}

    def func():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise exc(f"failure {calls['count']}")
        return "ok"

    return func, calls


def test_retry_succeeds_after_failures(no_sleep):
    func, calls = flaky(2)

    outcome = retry_with_backoff(func, max_attempts=3, delay=linear_backoff(0.5))

    assert outcome == Succeeded(value="ok", attempts=3)
    assert calls["count"] == 3
    assert no_sleep == [0.5, 1.0]


def test_retry_exhausted_without_trailing_sleep(no_sleep):
    func, calls = flaky(10)

    outcome = retry_with_backoff(func, max_attempts=3, delay=linear_backoff(0.5))

    assert isinstance(outcome, Exhausted)
    assert outcome.attempts == 3
    assert str(outcome.error) == "failure 3"
    assert calls["count"] == 3
    assert no_sleep == [0.5, 1.0]


def test_retry_propagates_unlisted_exceptions(no_sleep):
    func, calls = flaky(1, exc=KeyError)

    with pytest.raises(KeyError):
        retry_with_backoff(func, max_attempts=3, delay=linear_backoff(0.5), exceptions=(ValueError,))

    assert calls["count"] == 1
    assert no_sleep == []


def test_retry_makes_at_least_one_attempt(no_sleep):
    func, calls = flaky(0)

    assert retry_with_backoff(func, max_attempts=0, delay=linear_backoff(1)) == Succeeded("ok", 1)


def test_parse_timestamp():
    expected = datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("2025-01-01T00:00:00Z") == expected
    assert parse_timestamp("2025-01-01T00:00:00") == expected
    assert parse_timestamp(datetime(2025, 1, 1)) == expected
    assert parse_timestamp("garbage") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(12345) is None


def test_is_finite_number():
    assert is_finite_number(3)
    assert is_finite_number(2.5)
    assert not is_finite_number(True)
    assert not is_finite_number(float("nan"))
    assert not is_finite_number("3")
    assert not is_finite_number(10 ** 400)


def test_extract_json_text():
    assert extract_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert extract_json_text('Here you go: {"a": {"b": 2}} thanks') == '{"a": {"b": 2}}'
    assert extract_json_text("   ") is None
    assert extract_json_text(None) is None
