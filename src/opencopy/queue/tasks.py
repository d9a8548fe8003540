"""Durable task queue stored alongside the content records."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import update
from sqlmodel import Session, select

from opencopy.storage.models import QueuedTask

GENERATE_ARTICLE = "generate_article"
PUBLISH_ARTICLE = "publish_article"

PENDING = "pending"
RUNNING = "running"
DONE = "done"
FAILED = "failed"


class TaskQueue:
    """Enqueue and claim tasks with an activation time.

    A task becomes eligible once ``available_at`` has passed. Claiming uses a
    conditional pending -> running update, so two workers never run the same
    task.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def enqueue(
        self,
        name: str,
        payload: dict,
        *,
        now: datetime,
        delay: timedelta | None = None,
        unique_key: str | None = None,
        commit: bool = True,
    ) -> QueuedTask:
        """Add a task, or return the live task already holding ``unique_key``.

        With ``commit=False`` the row is only flushed so it joins the caller's
        transaction.
        """
        if unique_key is not None:
            existing = self.find_live(unique_key)
            if existing is not None:
                return existing

        task = QueuedTask(
            name=name,
            payload_json=json.dumps(payload),
            unique_key=unique_key,
            status=PENDING,
            available_at=now + delay if delay else now,
            created_at=now,
        )
        self._session.add(task)
        if not commit:
            self._session.flush()
            return task
        self._session.commit()
        self._session.refresh(task)
        return task

    def find_live(self, unique_key: str) -> QueuedTask | None:
        """The pending or running task holding ``unique_key``, if any."""
        return self._session.exec(
            select(QueuedTask)
            .where(QueuedTask.unique_key == unique_key)
            .where(QueuedTask.status.in_([PENDING, RUNNING]))
        ).first()

    def pending(self, name: str | None = None) -> list[QueuedTask]:
        query = select(QueuedTask).where(QueuedTask.status == PENDING)
        if name is not None:
            query = query.where(QueuedTask.name == name)
        return list(self._session.exec(query.order_by(QueuedTask.id)).all())

    def reserve(self, names: Iterable[str], now: datetime, limit: int = 10) -> list[QueuedTask]:
        """Claim up to ``limit`` due tasks with one of ``names``."""
        candidates = self._session.exec(
            select(QueuedTask)
            .where(QueuedTask.status == PENDING)
            .where(QueuedTask.name.in_(list(names)))
            .where(QueuedTask.available_at <= now)
            .order_by(QueuedTask.available_at, QueuedTask.id)
            .limit(limit)
        ).all()

        claimed: list[QueuedTask] = []
        for task in candidates:
            result = self._session.execute(
                update(QueuedTask)
                .where(QueuedTask.id == task.id)
                .where(QueuedTask.status == PENDING)
                .values(status=RUNNING, attempts=QueuedTask.attempts + 1)
            )
            self._session.commit()
            if result.rowcount == 1:
                self._session.refresh(task)
                claimed.append(task)
        return claimed

    def complete(self, task: QueuedTask) -> None:
        task.status = DONE
        task.last_error = None
        self._save(task)

    def release(self, task: QueuedTask, now: datetime, backoff: timedelta, error: str) -> None:
        """Put a failed attempt back in the queue after ``backoff``."""
        task.status = PENDING
        task.available_at = now + backoff
        task.last_error = error
        self._save(task)

    def fail(self, task: QueuedTask, error: str) -> None:
        task.status = FAILED
        task.last_error = error
        self._save(task)

    def _save(self, task: QueuedTask) -> None:
        self._session.add(task)
        self._session.commit()
        self._session.refresh(task)
