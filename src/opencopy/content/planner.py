"""Content planner: keyword intake and status transitions for scheduled content."""

from __future__ import annotations

import json
from datetime import date, datetime, time
from typing import Iterable

from sqlalchemy import update
from sqlmodel import Session

from opencopy.content.classifier import classify
from opencopy.content.types import ContentStatus
from opencopy.errors import InvalidTransitionError
from opencopy.logs import get_logger
from opencopy.storage.models import Keyword, Project, ScheduledContent

logger = get_logger(__name__)


def add_keyword(
    session: Session,
    project: Project,
    keyword: str,
    *,
    target_word_count: int | None = None,
    tone: str | None = None,
    secondary_keywords: Iterable[str] = (),
) -> tuple[Keyword, ScheduledContent]:
    """Create a keyword and seed a backlog item for it.

    The content type is inferred from the keyword text; the word count falls
    back to that type's suggested length unless the keyword overrides it.
    """
    record = Keyword(
        project_id=project.id,
        keyword=keyword,
        secondary_keywords_json=json.dumps(list(secondary_keywords)),
        target_word_count=target_word_count,
        tone=tone,
    )
    session.add(record)
    session.flush()

    content_type = classify(keyword)
    item = ScheduledContent(
        project_id=project.id,
        keyword_id=record.id,
        title=None,  # display title falls back to the keyword
        content_type=content_type,
        status=ContentStatus.BACKLOG,
        target_word_count=target_word_count or content_type.suggested_word_count,
        tone=tone,
    )
    session.add(item)
    session.commit()
    session.refresh(record)
    session.refresh(item)

    logger.info(
        "keyword.backlogged",
        keyword_id=record.id,
        scheduled_content_id=item.id,
        content_type=content_type.value,
    )
    return record, item


def display_title(session: Session, item: ScheduledContent) -> str:
    if item.title:
        return item.title
    if item.keyword_id is not None:
        keyword = session.get(Keyword, item.keyword_id)
        if keyword is not None:
            return keyword.keyword
    return "Untitled"


def transition_if(
    session: Session,
    content_id: int,
    expected: ContentStatus,
    target: ContentStatus,
    *,
    commit: bool = True,
) -> bool:
    """Atomically move an item from ``expected`` to ``target``.

    Single conditional UPDATE; returns False when the row was no longer in
    ``expected`` (e.g. claimed by a concurrent run). With ``commit=False``
    the caller owns the transaction.
    """
    result = session.execute(
        update(ScheduledContent)
        .where(ScheduledContent.id == content_id)
        .where(ScheduledContent.status == expected)
        .values(status=target, previous_status=expected.value, updated_at=datetime.now())
    )
    if commit:
        session.commit()
    return result.rowcount == 1


def _move(session: Session, item: ScheduledContent, target: ContentStatus, **changes) -> ScheduledContent:
    current = ContentStatus(item.status)
    if not current.can_transition_to(target):
        raise InvalidTransitionError(current.value, target.value)
    for field, value in changes.items():
        setattr(item, field, value)
    item.previous_status = current.value
    item.status = target
    item.updated_at = datetime.now()
    session.add(item)
    session.commit()
    session.refresh(item)
    return item


def schedule(
    session: Session, item: ScheduledContent, on: date, at: time | None = None
) -> ScheduledContent:
    return _move(session, item, ContentStatus.SCHEDULED, scheduled_date=on, scheduled_time=at)


def move_to_backlog(session: Session, item: ScheduledContent) -> ScheduledContent:
    return _move(session, item, ContentStatus.BACKLOG, scheduled_date=None, scheduled_time=None)


def approve(session: Session, item: ScheduledContent) -> ScheduledContent:
    return _move(session, item, ContentStatus.APPROVED)


def mark_published(session: Session, item: ScheduledContent) -> ScheduledContent:
    return _move(session, item, ContentStatus.PUBLISHED)


def reschedule(
    session: Session, item: ScheduledContent, on: date, at: time | None = None
) -> ScheduledContent:
    """Move an item's date. Failed items go back to scheduled."""
    if item.status == ContentStatus.FAILED:
        return _move(
            session,
            item,
            ContentStatus.SCHEDULED,
            scheduled_date=on,
            scheduled_time=at,
            error_message=None,
        )
    item.scheduled_date = on
    item.scheduled_time = at
    item.updated_at = datetime.now()
    session.add(item)
    session.commit()
    session.refresh(item)
    return item
