"""Queries that pick scheduled content due for generation or publishing."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import and_, or_
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from opencopy.content.types import AutoPublishMode, ContentStatus
from opencopy.errors import StoreUnavailableError
from opencopy.storage.models import Project, ScheduledContent


def find_generation_ready(
    session: Session,
    now: datetime,
    days: int = 1,
    limit: int = 100,
) -> list[ScheduledContent]:
    """Scheduled items with a keyword, no article, and a date within the look-ahead.

    Ordered by date, then time with untimed items first in their day, then
    planner position and id so repeated runs see the same order.
    """
    horizon = now.date() + timedelta(days=days)
    query = (
        select(ScheduledContent)
        .where(ScheduledContent.status == ContentStatus.SCHEDULED)
        .where(ScheduledContent.keyword_id.is_not(None))
        .where(ScheduledContent.article_id.is_(None))
        .where(ScheduledContent.scheduled_date.is_not(None))
        .where(ScheduledContent.scheduled_date <= horizon)
        .order_by(
            ScheduledContent.scheduled_date.asc(),
            ScheduledContent.scheduled_time.asc().nulls_first(),
            ScheduledContent.position.asc(),
            ScheduledContent.id.asc(),
        )
        .limit(limit)
    )
    try:
        return list(session.exec(query).all())
    except OperationalError as e:
        raise StoreUnavailableError(str(e)) from e


def find_publish_ready(session: Session, now: datetime) -> list[ScheduledContent]:
    """Approved items with an article whose scheduled moment has passed.

    Only projects that auto-publish on schedule qualify. With a time set the
    full date+time must be <= now; without one, the date alone must be
    <= today.
    """
    today = now.date()
    timed_and_due = and_(
        ScheduledContent.scheduled_time.is_not(None),
        or_(
            ScheduledContent.scheduled_date < today,
            and_(
                ScheduledContent.scheduled_date == today,
                ScheduledContent.scheduled_time <= now.time(),
            ),
        ),
    )
    untimed_and_due = and_(
        ScheduledContent.scheduled_time.is_(None),
        ScheduledContent.scheduled_date <= today,
    )
    query = (
        select(ScheduledContent)
        .join(Project, Project.id == ScheduledContent.project_id)
        .where(Project.auto_publish == AutoPublishMode.SCHEDULED)
        .where(ScheduledContent.article_id.is_not(None))
        .where(ScheduledContent.status == ContentStatus.APPROVED)
        .where(or_(timed_and_due, untimed_and_due))
        .order_by(
            ScheduledContent.scheduled_date.asc(),
            ScheduledContent.scheduled_time.asc().nulls_first(),
            ScheduledContent.id.asc(),
        )
    )
    try:
        return list(session.exec(query).all())
    except OperationalError as e:
        raise StoreUnavailableError(str(e)) from e
