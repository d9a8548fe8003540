"""Publisher contract shared by every integration type."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from opencopy.content.types import IntegrationType, PublicationStatus
from opencopy.logs import get_logger
from opencopy.storage.models import Article, Integration, Keyword

logger = get_logger(__name__)

_SENSITIVE_HEADERS = {"authorization", "x-api-key", "api-key", "x-auth-token"}
_MASK = "••••••••"


@dataclass(frozen=True)
class PublishableContent:
    """Normalized view of an article, independent of how it is stored."""

    id: int
    title: str
    slug: str
    html: str
    markdown: str
    created_at: datetime
    meta_description: str | None = None
    excerpt: str | None = None
    featured_image_url: str | None = None
    tags: tuple[str, ...] = ()
    word_count: int = 0
    reading_time_minutes: int = 0

    @classmethod
    def from_article(cls, article: Article, keyword: Keyword | None = None) -> PublishableContent:
        tags: list[str] = []
        if keyword is not None:
            tags.append(keyword.keyword)
            tags.extend(keyword.secondary_keywords)
        return cls(
            id=article.id,
            title=article.title,
            slug=article.slug,
            html=article.content or "",
            markdown=article.content_markdown or "",
            created_at=article.created_at,
            meta_description=article.meta_description,
            excerpt=article.excerpt,
            featured_image_url=article.featured_image_url,
            tags=tuple(dict.fromkeys(tags)),
            word_count=article.word_count,
            reading_time_minutes=article.reading_time_minutes,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "content_html": self.html,
            "content_markdown": self.markdown,
            "meta_description": self.meta_description,
            "excerpt": self.excerpt,
            "image_url": self.featured_image_url,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
            "word_count": self.word_count,
            "reading_time_minutes": self.reading_time_minutes,
        }


@dataclass(frozen=True)
class PublishResult:
    """Outcome of a publish or connection-test attempt."""

    status: PublicationStatus
    external_id: str | None = None
    external_url: str | None = None
    error_message: str | None = None
    payload: dict | None = None
    response: dict | None = None
    http_status_code: int | None = None
    request_url: str | None = None
    request_method: str | None = None
    request_headers: dict[str, str] = field(default_factory=dict)
    response_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def success(cls, **details: Any) -> PublishResult:
        return cls(status=PublicationStatus.PUBLISHED, **details)

    @classmethod
    def failure(cls, error_message: str, **details: Any) -> PublishResult:
        return cls(status=PublicationStatus.FAILED, error_message=error_message, **details)

    @classmethod
    def pending(cls) -> PublishResult:
        return cls(status=PublicationStatus.PENDING)

    @property
    def is_successful(self) -> bool:
        return self.status is PublicationStatus.PUBLISHED

    @property
    def is_failed(self) -> bool:
        return self.status is PublicationStatus.FAILED

    def to_record(self) -> dict[str, Any]:
        """Fields stored on a Publication row."""
        return {
            "status": self.status,
            "external_id": self.external_id,
            "external_url": self.external_url,
            "error_message": self.error_message,
            "payload": self.payload,
            "response": self.response,
        }

    def to_debug(self) -> dict[str, Any]:
        """Request/response view for troubleshooting, with secrets masked."""
        return {
            "success": self.is_successful,
            "message": (
                "Connection successful!"
                if self.is_successful
                else (self.error_message or "Connection failed")
            ),
            "request": {
                "method": self.request_method or "POST",
                "url": self.request_url,
                "headers": mask_headers(self.request_headers),
                "body": self.payload,
            },
            "response": {
                "status_code": self.http_status_code,
                "headers": self.response_headers,
                "body": self.response,
            },
        }


def mask_headers(headers: dict[str, str]) -> dict[str, str]:
    masked = {}
    for key, value in headers.items():
        if key.lower() in _SENSITIVE_HEADERS:
            masked[key] = f"Bearer {_MASK}" if value.lower().startswith("bearer ") else _MASK
        else:
            masked[key] = value
    return masked


@runtime_checkable
class Publisher(Protocol):
    """Capability every integration publisher provides."""

    @property
    def type(self) -> IntegrationType: ...

    def publish(self, content: PublishableContent, integration: Integration) -> PublishResult: ...

    def test(self, integration: Integration) -> PublishResult: ...

    def validate_credentials(self, integration: Integration) -> list[str]: ...


class BasePublisher(ABC):
    """Shared publish/test flow: validate, delegate, log, never raise."""

    type: IntegrationType

    @abstractmethod
    def validate_credentials(self, integration: Integration) -> list[str]:
        """Return validation errors; empty when the credentials look usable."""
        ...

    @abstractmethod
    def _do_publish(self, content: PublishableContent, integration: Integration) -> PublishResult:
        ...

    @abstractmethod
    def _do_test(self, integration: Integration) -> PublishResult:
        ...

    def publish(self, content: PublishableContent, integration: Integration) -> PublishResult:
        return self._run(
            "publish",
            integration,
            lambda: self._do_publish(content, integration),
            content_id=content.id,
            content_title=content.title,
        )

    def test(self, integration: Integration) -> PublishResult:
        return self._run("test", integration, lambda: self._do_test(integration))

    def _run(self, operation: str, integration: Integration, action, **context: Any) -> PublishResult:
        log = logger.bind(
            operation=operation,
            integration_id=integration.id,
            integration_name=integration.name,
            integration_type=integration.type,
        )
        log.info("publishing.started", **context)

        errors = self.validate_credentials(integration)
        if errors:
            result = PublishResult.failure("Invalid credentials: " + ", ".join(errors))
            log.warning("publishing.completed", status=result.status.value, error=result.error_message)
            return result

        try:
            result = action()
        except Exception as e:
            log.error("publishing.failed", error=str(e), exc_info=True)
            return PublishResult.failure(str(e))

        level = log.info if result.is_successful else log.warning
        level(
            "publishing.completed",
            status=result.status.value,
            external_id=result.external_id,
            error=result.error_message,
        )
        return result
