"""Task worker: runs due queued tasks with retry and backoff."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable

from sqlmodel import Session, select

from opencopy.content.planner import transition_if
from opencopy.content.types import ContentStatus, PublicationStatus
from opencopy.errors import TaskNotFoundError
from opencopy.logs import get_logger
from opencopy.publishing.factory import PublisherFactory
from opencopy.publishing.service import Listener, PublishingService, load_content
from opencopy.queue.tasks import PUBLISH_ARTICLE, TaskQueue
from opencopy.storage.models import Article, Integration, ScheduledContent

logger = get_logger(__name__)

Handler = Callable[[Session, dict], None]


@dataclass
class WorkerReport:
    completed: int = 0
    retried: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.completed + self.retried + self.failed


class Worker:
    """Runs tasks whose name has a registered handler.

    Tasks without a handler are left pending for whichever worker owns them.
    A handler that raises is retried with linear backoff until
    ``max_attempts`` is reached, then the task is marked failed.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        handlers: dict[str, Handler],
        *,
        max_attempts: int = 3,
        backoff_seconds: int = 60,
        batch_size: int = 10,
    ) -> None:
        self._session_factory = session_factory
        self._handlers = dict(handlers)
        self._max_attempts = max_attempts
        self._backoff = timedelta(seconds=backoff_seconds)
        self._batch_size = batch_size

    def run_once(self, now: datetime) -> WorkerReport:
        report = WorkerReport()
        with self._session_factory() as session:
            queue = TaskQueue(session)
            for task in queue.reserve(self._handlers, now, limit=self._batch_size):
                log = logger.bind(task_id=task.id, task=task.name, attempt=task.attempts)
                log.info("task.started")
                try:
                    self._handlers[task.name](session, task.payload)
                except Exception as e:
                    session.rollback()
                    if task.attempts >= self._max_attempts:
                        queue.fail(task, str(e))
                        log.error("task.failed", error=str(e))
                        report.failed += 1
                    else:
                        queue.release(task, now, self._backoff * task.attempts, str(e))
                        log.warning("task.retrying", error=str(e))
                        report.retried += 1
                    continue
                queue.complete(task)
                log.info("task.completed")
                report.completed += 1
        return report


def publish_article(session: Session, article_id: int, service: PublishingService) -> None:
    """Publish an article to every active integration of its project.

    When all integrations succeed, the linked scheduled content moves from
    approved to published.
    """
    article = session.get(Article, article_id)
    if article is None:
        raise TaskNotFoundError(f"Article {article_id} no longer exists")

    integrations = session.exec(
        select(Integration)
        .where(Integration.project_id == article.project_id)
        .where(Integration.is_active == True)  # noqa: E712
        .order_by(Integration.id)
    ).all()

    if not integrations:
        logger.info("publish_article.no_integrations", article_id=article_id)
        return

    publications = service.publish_to_many(load_content(session, article), integrations)
    successful = sum(1 for p in publications if p.status == PublicationStatus.PUBLISHED)
    failed = len(publications) - successful

    logger.info(
        "publish_article.completed",
        article_id=article_id,
        total_integrations=len(publications),
        successful=successful,
        failed=failed,
    )

    if failed or not successful:
        return

    item = session.exec(
        select(ScheduledContent).where(ScheduledContent.article_id == article_id)
    ).first()
    if item is not None and transition_if(
        session, item.id, ContentStatus.APPROVED, ContentStatus.PUBLISHED
    ):
        logger.info("publish_article.marked_published", scheduled_content_id=item.id)


def make_publish_handler(
    factory: PublisherFactory | None = None, listeners: Iterable[Listener] = ()
) -> Handler:
    listeners = list(listeners)

    def handle(session: Session, payload: dict) -> None:
        service = PublishingService(session, factory, listeners)
        publish_article(session, payload["article_id"], service)

    return handle


def default_handlers(
    factory: PublisherFactory | None = None, listeners: Iterable[Listener] = ()
) -> dict[str, Handler]:
    return {PUBLISH_ARTICLE: make_publish_handler(factory, listeners)}
