"""In-process cadence loop for the two scheduled scans."""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable

from sqlmodel import Session

from opencopy.config import SchedulerSettings
from opencopy.errors import StoreUnavailableError
from opencopy.logs import get_logger
from opencopy.scheduling.dispatcher import (
    GenerationScanReport,
    PublishScanReport,
    run_generation_scan,
    run_publish_scan,
)

logger = get_logger(__name__)


class ScanScheduler:
    """Triggers generation-scan and publish-scan on their configured cadence.

    The generation scan runs on a single background worker and never
    overlaps itself: a tick that comes due while the previous scan is still
    running is skipped. The publish scan runs inline on every tick it is due.
    """

    def __init__(
        self,
        settings: SchedulerSettings,
        session_factory: Callable[[], Session],
        *,
        on_generation: Callable[[GenerationScanReport], None] | None = None,
        on_publish: Callable[[PublishScanReport], None] | None = None,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory
        self._on_generation = on_generation
        self._on_publish = on_publish
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="generation-scan")
        self._generation: Future | None = None
        self._next_generation: datetime | None = None
        self._next_publish: datetime | None = None

    def tick(self, now: datetime) -> list[str]:
        """Start whatever scans are due at ``now``; returns their names."""
        started: list[str] = []

        if self._next_generation is None or now >= self._next_generation:
            self._next_generation = now + timedelta(
                minutes=self._settings.generation_interval_minutes
            )
            if self._generation is not None and not self._generation.done():
                logger.warning("scheduler.generation_overlap_skipped", at=now.isoformat())
            else:
                self._generation = self._executor.submit(self._generation_scan, now)
                started.append("generation")

        if self._next_publish is None or now >= self._next_publish:
            self._next_publish = now + timedelta(minutes=self._settings.publish_interval_minutes)
            self._publish_scan(now)
            started.append("publish")

        return started

    def seconds_until_next(self, now: datetime) -> float:
        upcoming = [t for t in (self._next_generation, self._next_publish) if t is not None]
        if not upcoming:
            return 0.0
        return max(0.0, (min(upcoming) - now).total_seconds())

    def run(
        self,
        *,
        ticks: int | None = None,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        count = 0
        try:
            while ticks is None or count < ticks:
                self.tick(clock())
                count += 1
                if ticks is None or count < ticks:
                    sleep(self.seconds_until_next(clock()))
        finally:
            self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _generation_scan(self, now: datetime) -> None:
        try:
            with self._session_factory() as session:
                report = run_generation_scan(
                    session,
                    now,
                    days=self._settings.generation_days,
                    limit=self._settings.generation_limit,
                    spread_minutes=self._settings.generation_spread_minutes,
                )
        except StoreUnavailableError as e:
            # Retried naturally on the next cadence tick.
            logger.error("scheduler.generation_scan_failed", error=str(e))
            return
        except Exception as e:
            # Nothing reads the future's result, so this is the only trace.
            logger.error("scheduler.generation_scan_crashed", error=str(e), exc_info=True)
            return
        if self._on_generation:
            self._on_generation(report)

    def _publish_scan(self, now: datetime) -> None:
        try:
            with self._session_factory() as session:
                report = run_publish_scan(session, now)
        except StoreUnavailableError as e:
            logger.error("scheduler.publish_scan_failed", error=str(e))
            return
        if self._on_publish:
            self._on_publish(report)
