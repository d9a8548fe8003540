"""Tests for the in-process scan scheduler."""

from __future__ import annotations

import threading
from datetime import timedelta

from structlog.testing import capture_logs

from opencopy.config import SchedulerSettings
from opencopy.content.types import ContentStatus
from opencopy.errors import StoreUnavailableError
from opencopy.scheduling import runner
from opencopy.scheduling.runner import ScanScheduler
from opencopy.storage.database import get_session
from opencopy.storage.models import ScheduledContent
from tests.conftest import NOW, make_item, make_project


def _scheduler(settings, **kwargs) -> ScanScheduler:
    return ScanScheduler(settings.scheduler, lambda: get_session(settings.db_path), **kwargs)


class TestCadence:
    def test_due_scans_per_tick(self, session, settings) -> None:
        scheduler = _scheduler(settings)
        try:
            assert scheduler.tick(NOW) == ["generation", "publish"]
            assert scheduler.tick(NOW + timedelta(seconds=30)) == []
            assert scheduler.tick(NOW + timedelta(minutes=1)) == ["publish"]
            scheduler._generation.result(timeout=5)
            assert scheduler.tick(NOW + timedelta(minutes=60)) == ["generation", "publish"]
        finally:
            scheduler.close()

    def test_seconds_until_next(self, session, settings) -> None:
        scheduler = _scheduler(settings)
        try:
            assert scheduler.seconds_until_next(NOW) == 0.0
            scheduler.tick(NOW)
            assert scheduler.seconds_until_next(NOW + timedelta(seconds=20)) == 40.0
        finally:
            scheduler.close()

    def test_run_sleeps_between_ticks(self, session, settings) -> None:
        sleeps = []
        scheduler = _scheduler(settings)

        scheduler.run(ticks=2, clock=lambda: NOW, sleep=sleeps.append)

        assert sleeps == [60.0]


class TestScans:
    def test_generation_scan_uses_configured_spread(self, session, settings) -> None:
        project = make_project(session)
        items = [make_item(session, project, kw) for kw in ("alpha", "beta")]
        reports = []
        scheduler = _scheduler(settings, on_generation=reports.append)

        scheduler.tick(NOW)
        scheduler.close()

        [report] = reports
        assert report.dispatched == 2
        assert [o.delay_minutes for o in report.items] == [0, 55]
        session.expire_all()
        assert all(
            session.get(ScheduledContent, i.id).status is ContentStatus.QUEUED for i in items
        )

    def test_generation_scan_never_overlaps(self, session, settings, monkeypatch) -> None:
        release = threading.Event()
        calls = []

        def slow_scan(*args, **kwargs):
            calls.append(args[1])
            release.wait(timeout=5)
            raise StoreUnavailableError("stopped")

        monkeypatch.setattr(runner, "run_generation_scan", slow_scan)
        scheduler = _scheduler(settings)

        with capture_logs() as logs:
            scheduler.tick(NOW)
            started = scheduler.tick(NOW + timedelta(minutes=60))
            release.set()
            scheduler.close()

        assert started == ["publish"]
        assert calls == [NOW]
        assert "scheduler.generation_overlap_skipped" in [e["event"] for e in logs]

    def test_store_failure_is_logged_not_raised(self, settings, monkeypatch) -> None:
        def unavailable(*args, **kwargs):
            raise StoreUnavailableError("database is locked")

        monkeypatch.setattr(runner, "run_publish_scan", unavailable)
        monkeypatch.setattr(runner, "run_generation_scan", unavailable)
        scheduler = _scheduler(settings)

        with capture_logs() as logs:
            scheduler.tick(NOW)
            scheduler.close()

        events = {e["event"]: e for e in logs}
        assert events["scheduler.publish_scan_failed"]["error"] == "database is locked"
        assert events["scheduler.generation_scan_failed"]["log_level"] == "error"

    def test_unexpected_generation_error_is_logged(self, settings, monkeypatch) -> None:
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(runner, "run_generation_scan", broken)
        scheduler = _scheduler(settings)

        with capture_logs() as logs:
            scheduler.tick(NOW)
            scheduler.close()

        [entry] = [e for e in logs if e["event"] == "scheduler.generation_scan_crashed"]
        assert entry["log_level"] == "error"
        assert entry["error"] == "boom"
        assert entry["exc_info"] is True
