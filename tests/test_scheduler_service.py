from datetime import date

from savings_tracker.config import AppConfig
from savings_tracker.services.materialization_service import MaterializationResult
from savings_tracker.services.scheduler_service import MaterializationScheduler


class FakeCycle:
    def __init__(self):
        self.calls = []

    def __call__(self, today=None, notifier=None, db_path=None):
        self.calls.append((today, notifier, db_path))
        return MaterializationResult(date=today or date(2026, 3, 20))


def test_run_once_passes_database_and_notifier():
    config = AppConfig(database_path="/tmp/test.duckdb")
    cycle = FakeCycle()
    notifier = object()
    scheduler = MaterializationScheduler(config, notifier=notifier, cycle=cycle)

    result = scheduler.run_once(today=date(2026, 3, 20))

    assert cycle.calls == [(date(2026, 3, 20), notifier, "/tmp/test.duckdb")]
    assert result.date == date(2026, 3, 20)
    assert scheduler.last_result is result


def test_overlapping_run_is_skipped():
    cycle = FakeCycle()
    scheduler = MaterializationScheduler(AppConfig(), cycle=cycle)

    scheduler._lock.acquire()
    try:
        assert scheduler.run_once() is None
        assert scheduler.status()["busy"] is True
    finally:
        scheduler._lock.release()

    assert cycle.calls == []
    assert scheduler.run_once() is not None


def test_failed_tick_is_logged_and_releases_lock(caplog):
    def broken_cycle(**kwargs):
        raise RuntimeError("database locked")

    scheduler = MaterializationScheduler(AppConfig(), cycle=broken_cycle)
    scheduler._tick()

    assert "database locked" in caplog.text
    assert scheduler.status()["busy"] is False


def test_invalid_cron_uses_default():
    config = AppConfig()
    config.scheduler.cron = "not a cron"
    assert MaterializationScheduler(config).cron == "0 8 * * *"


def test_start_and_stop():
    scheduler = MaterializationScheduler(AppConfig(), cycle=FakeCycle())
    scheduler.start()
    try:
        status = scheduler.status()
        assert status["running"] is True
        assert status["next_run_time"] is not None
        assert status["last_result"] is None
    finally:
        scheduler.stop()
    assert scheduler.running is False
