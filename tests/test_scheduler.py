import pytest

from oracle.market_oracle import SyncResult
from oracle.scheduler import OracleScheduler


@pytest.fixture
def scheduler():
    instance = OracleScheduler()
    yield instance
    if instance.is_running:
        instance.stop(wait=False)


def test_run_once_records_result(scheduler):
    result = SyncResult(markets=[], updated=False)
    scheduler.sync_function = lambda: result

    assert scheduler.run_once() is result
    assert scheduler.last_result is result
    assert scheduler.is_job_running() is False


def test_run_once_skips_overlapping_pass(scheduler):
    calls = []
    scheduler.sync_function = lambda: calls.append(1)

    scheduler._execution_lock.acquire()
    try:
        assert scheduler.run_once() is None
    finally:
        scheduler._execution_lock.release()

    assert calls == []


def test_run_once_swallows_failures(scheduler):
    def boom():
        raise RuntimeError("sync failed")

    scheduler.sync_function = boom

    assert scheduler.run_once() is None
    assert scheduler.is_job_running() is False


def test_start_rejects_invalid_interval(scheduler):
    assert scheduler.start(lambda: None, interval_minutes=0) is False
    assert scheduler.is_running is False


def test_start_and_stop(scheduler):
    assert scheduler.start(lambda: SyncResult([], False), interval_minutes=60) is True
    assert scheduler.start(lambda: SyncResult([], False), interval_minutes=60) is False

    status = scheduler.get_status()
    assert status["is_running"] is True
    assert status["interval_minutes"] == 60
    assert status["next_run_time"] is not None

    assert scheduler.stop(wait=False) is True
    assert scheduler.get_status()["is_running"] is False
    assert scheduler.stop() is False
