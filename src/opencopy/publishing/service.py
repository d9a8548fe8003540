"""Orchestrates publishing content to integrations and records the outcome."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from sqlmodel import Session, select

from opencopy.content.types import PublicationStatus
from opencopy.errors import UnsupportedIntegrationError
from opencopy.logs import get_logger
from opencopy.publishing.base import PublishableContent, PublishResult
from opencopy.publishing.factory import PublisherFactory
from opencopy.storage.models import Article, Integration, Keyword, Publication

logger = get_logger(__name__)


@dataclass(frozen=True)
class ArticlePublished:
    article_id: int
    integration_id: int
    publication_id: int
    external_url: str | None = None


@dataclass(frozen=True)
class ArticlePublishFailed:
    article_id: int
    integration_id: int
    publication_id: int
    error: str


PublishEvent = ArticlePublished | ArticlePublishFailed
Listener = Callable[[PublishEvent], None]


def load_content(session: Session, article: Article) -> PublishableContent:
    keyword = session.get(Keyword, article.keyword_id) if article.keyword_id else None
    return PublishableContent.from_article(article, keyword)


class PublishingService:
    """Main entry point for publishing: one Publication row per article/integration."""

    def __init__(
        self,
        session: Session,
        factory: PublisherFactory | None = None,
        listeners: Iterable[Listener] = (),
    ) -> None:
        self._session = session
        self._factory = factory or PublisherFactory()
        self._listeners = list(listeners)

    def publish(self, content: PublishableContent, integration: Integration) -> Publication:
        publication = self._upsert(content.id, integration.id, PublicationStatus.PUBLISHING)
        try:
            publisher = self._factory.make(integration)
        except UnsupportedIntegrationError as e:
            return self._record(publication, PublishResult.failure(str(e)), integration)
        result = publisher.publish(content, integration)
        return self._record(publication, result, integration)

    def publish_to_many(
        self, content: PublishableContent, integrations: Iterable[Integration]
    ) -> list[Publication]:
        return [self.publish(content, integration) for integration in integrations]

    def test(self, integration: Integration) -> PublishResult:
        publisher = self._factory.make(integration)
        result = publisher.test(integration)
        if result.is_successful:
            integration.last_connected_at = datetime.now()
            self._session.add(integration)
            self._session.commit()
        return result

    def retry(self, publication: Publication) -> Publication:
        article = self._session.get(Article, publication.article_id)
        integration = self._session.get(Integration, publication.integration_id)
        if article is None or integration is None:
            raise ValueError("Publication missing article or integration")
        return self.publish(load_content(self._session, article), integration)

    def history(self, article_id: int) -> list[Publication]:
        return list(
            self._session.exec(
                select(Publication)
                .where(Publication.article_id == article_id)
                .order_by(Publication.created_at.desc(), Publication.id.desc())
            ).all()
        )

    def _upsert(self, article_id: int, integration_id: int, status: PublicationStatus) -> Publication:
        publication = self._session.exec(
            select(Publication)
            .where(Publication.article_id == article_id)
            .where(Publication.integration_id == integration_id)
        ).first()
        if publication is None:
            publication = Publication(article_id=article_id, integration_id=integration_id)
        publication.status = status
        publication.error_message = None
        publication.updated_at = datetime.now()
        self._session.add(publication)
        self._session.commit()
        self._session.refresh(publication)
        return publication

    def _record(
        self, publication: Publication, result: PublishResult, integration: Integration
    ) -> Publication:
        record = result.to_record()
        publication.status = record["status"]
        publication.external_id = record["external_id"]
        publication.external_url = record["external_url"]
        publication.error_message = record["error_message"]
        publication.payload_json = json.dumps(record["payload"]) if record["payload"] is not None else None
        publication.response_json = json.dumps(record["response"]) if record["response"] is not None else None
        publication.published_at = datetime.now() if result.is_successful else None
        publication.updated_at = datetime.now()
        self._session.add(publication)

        if result.is_successful:
            integration.last_connected_at = datetime.now()
            self._session.add(integration)

        self._session.commit()
        self._session.refresh(publication)

        if result.is_successful:
            event: PublishEvent = ArticlePublished(
                article_id=publication.article_id,
                integration_id=integration.id,
                publication_id=publication.id,
                external_url=publication.external_url,
            )
        else:
            event = ArticlePublishFailed(
                article_id=publication.article_id,
                integration_id=integration.id,
                publication_id=publication.id,
                error=result.error_message or "Unknown error",
            )
        for listener in self._listeners:
            listener(event)
        return publication
