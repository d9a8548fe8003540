"""Generation and publish dispatchers for scheduled content.

Both scans are pure selection + enqueue: they never run generation or
publishing themselves. Scan parameters come from the caller, usually the
CLI, which reads them once from ``SchedulerSettings``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time

from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from opencopy.content.planner import display_title, transition_if
from opencopy.content.types import ContentStatus
from opencopy.errors import StoreUnavailableError
from opencopy.logs import get_logger
from opencopy.queue.tasks import GENERATE_ARTICLE, PUBLISH_ARTICLE, TaskQueue
from opencopy.scheduling.providers import resolve_text_provider
from opencopy.scheduling.selector import find_generation_ready, find_publish_ready
from opencopy.scheduling.spreader import compute_delay, delay_minutes
from opencopy.storage.models import Article, Keyword, Project

logger = get_logger(__name__)


@dataclass
class ItemOutcome:
    """What a scan did with one item."""

    scheduled_content_id: int
    title: str
    action: str  # dispatched | skipped | claimed_elsewhere | already_queued
    scheduled_date: date | None = None
    scheduled_time: time | None = None
    provider: str | None = None
    delay_minutes: int = 0
    reason: str | None = None
    article_id: int | None = None


@dataclass
class GenerationScanReport:
    dry_run: bool = False
    spread_minutes: int = 0
    items: list[ItemOutcome] = field(default_factory=list)

    @property
    def found(self) -> int:
        return len(self.items)

    @property
    def dispatched(self) -> int:
        return sum(1 for i in self.items if i.action == "dispatched")

    @property
    def skipped(self) -> int:
        return sum(1 for i in self.items if i.action == "skipped")

    @property
    def claimed_elsewhere(self) -> int:
        return sum(1 for i in self.items if i.action == "claimed_elsewhere")

    @property
    def summary(self) -> str:
        return f"{self.dispatched} dispatched, {self.skipped} skipped."


@dataclass
class PublishScanReport:
    items: list[ItemOutcome] = field(default_factory=list)

    @property
    def dispatched(self) -> int:
        return sum(1 for i in self.items if i.action == "dispatched")

    @property
    def already_queued(self) -> int:
        return sum(1 for i in self.items if i.action == "already_queued")


def run_generation_scan(
    session: Session,
    now: datetime,
    *,
    days: int = 1,
    limit: int = 100,
    spread_minutes: int = 60,
    dry_run: bool = False,
) -> GenerationScanReport:
    """Queue article generation for scheduled content that is coming due.

    Items whose project has no usable text provider are skipped and left
    untouched. In dry-run mode nothing is written or enqueued.

    Raises:
        StoreUnavailableError: the content store could not be reached.
    """
    report = GenerationScanReport(dry_run=dry_run, spread_minutes=spread_minutes)
    ready = find_generation_ready(session, now, days=days, limit=limit)
    total = len(ready)
    queue = TaskQueue(session)

    try:
        for index, item in enumerate(ready):
            title = display_title(session, item)
            project = session.get(Project, item.project_id)
            provider = resolve_text_provider(session, project) if project else None

            if provider is None:
                logger.warning(
                    "scheduled_generation.skipped",
                    scheduled_content_id=item.id,
                    project=project.name if project else None,
                    reason="no_ai_provider",
                )
                report.items.append(
                    ItemOutcome(
                        scheduled_content_id=item.id,
                        title=title,
                        action="skipped",
                        scheduled_date=item.scheduled_date,
                        reason=(
                            f"No AI provider configured for project "
                            f"'{project.name if project else item.project_id}'"
                        ),
                    )
                )
                continue

            delay = compute_delay(index, total, spread_minutes)
            minutes = delay_minutes(delay)
            outcome = ItemOutcome(
                scheduled_content_id=item.id,
                title=title,
                action="dispatched",
                scheduled_date=item.scheduled_date,
                provider=provider.name,
                delay_minutes=minutes,
            )

            if dry_run:
                report.items.append(outcome)
                continue

            item_id, keyword_id, scheduled_date = item.id, item.keyword_id, item.scheduled_date
            provider_id = provider.id
            try:
                claimed = transition_if(
                    session, item_id, ContentStatus.SCHEDULED, ContentStatus.QUEUED, commit=False
                )
                if claimed:
                    queue.enqueue(
                        GENERATE_ARTICLE,
                        {"scheduled_content_id": item_id, "ai_provider_id": provider_id},
                        now=now,
                        delay=delay,
                        commit=False,
                    )
                session.commit()
            except OperationalError:
                # The claim and its task are written together or not at all.
                session.rollback()
                raise

            if not claimed:
                # Another run got here first.
                logger.debug("scheduled_generation.already_claimed", scheduled_content_id=item_id)
                outcome.action = "claimed_elsewhere"
                report.items.append(outcome)
                continue

            keyword = session.get(Keyword, keyword_id) if keyword_id is not None else None
            logger.info(
                "scheduled_generation.dispatched",
                scheduled_content_id=item_id,
                keyword_id=keyword_id,
                keyword=keyword.keyword if keyword else None,
                scheduled_date=scheduled_date.isoformat(),
                ai_provider=provider.name,
                delay_minutes=minutes,
            )
            report.items.append(outcome)
    except OperationalError as e:
        raise StoreUnavailableError(str(e)) from e

    return report


def run_publish_scan(session: Session, now: datetime) -> PublishScanReport:
    """Queue a publish task for every approved item whose time has come.

    No status change happens here; the publish task marks the item
    published once every integration succeeded.

    Raises:
        StoreUnavailableError: the content store could not be reached.
    """
    report = PublishScanReport()
    ready = find_publish_ready(session, now)
    queue = TaskQueue(session)

    try:
        for item in ready:
            article = session.get(Article, item.article_id)
            item_id, article_id = item.id, item.article_id
            scheduled_date, scheduled_time = item.scheduled_date, item.scheduled_time

            unique_key = f"publish-article-{article_id}"
            existing = queue.find_live(unique_key)
            if existing is not None:
                logger.info(
                    "scheduled_publish.already_queued",
                    scheduled_content_id=item_id,
                    article_id=article_id,
                    task_id=existing.id,
                )
                action = "already_queued"
            else:
                queue.enqueue(
                    PUBLISH_ARTICLE, {"article_id": article_id}, now=now, unique_key=unique_key
                )
                logger.info(
                    "scheduled_publish.dispatched",
                    scheduled_content_id=item_id,
                    article_id=article_id,
                    scheduled_date=scheduled_date.isoformat() if scheduled_date else None,
                    scheduled_time=scheduled_time.isoformat() if scheduled_time else None,
                )
                action = "dispatched"

            report.items.append(
                ItemOutcome(
                    scheduled_content_id=item_id,
                    title=article.title if article else f"article {article_id}",
                    action=action,
                    scheduled_date=scheduled_date,
                    scheduled_time=scheduled_time,
                    article_id=article_id,
                )
            )
    except OperationalError as e:
        raise StoreUnavailableError(str(e)) from e

    return report
