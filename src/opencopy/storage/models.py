"""SQLModel database models."""

from __future__ import annotations

import json
from datetime import date, datetime, time

from sqlmodel import Field, SQLModel

from opencopy.content.types import (
    AutoPublishMode,
    ContentStatus,
    ContentType,
    PublicationStatus,
)


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True)
    created_at: datetime = Field(default_factory=datetime.now)


class AiProvider(SQLModel, table=True):
    """An AI provider configuration owned by a user."""

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    name: str
    provider: str = "openai"  # openai | anthropic | gemini | ...
    model: str = ""
    is_default: bool = False
    is_active: bool = True
    supports_text: bool = True
    supports_image: bool = False


class Project(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    name: str
    auto_publish: AutoPublishMode = AutoPublishMode.OFF
    default_ai_provider_id: int | None = Field(default=None, foreign_key="aiprovider.id")
    default_word_count: int | None = None
    default_tone: str | None = None


class Keyword(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="project.id", index=True)
    keyword: str
    secondary_keywords_json: str = "[]"
    target_word_count: int | None = None
    tone: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def secondary_keywords(self) -> list[str]:
        return json.loads(self.secondary_keywords_json or "[]")


class Article(SQLModel, table=True):
    """A generated article, the artifact that gets published."""

    id: int | None = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="project.id", index=True)
    keyword_id: int | None = Field(default=None, foreign_key="keyword.id")
    ai_provider_id: int | None = Field(default=None, foreign_key="aiprovider.id")
    title: str
    slug: str
    content: str = ""  # HTML
    content_markdown: str = ""
    meta_description: str | None = None
    excerpt: str | None = None
    featured_image_url: str | None = None
    word_count: int = 0
    reading_time_minutes: int = 0
    created_at: datetime = Field(default_factory=datetime.now)


class ScheduledContent(SQLModel, table=True):
    """A planned piece of content moving through the pipeline."""

    id: int | None = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="project.id", index=True)
    keyword_id: int | None = Field(default=None, foreign_key="keyword.id", index=True)
    article_id: int | None = Field(default=None, foreign_key="article.id")
    title: str | None = None  # display title override
    content_type: ContentType = ContentType.BLOG_POST
    status: ContentStatus = Field(default=ContentStatus.BACKLOG, index=True)
    previous_status: str | None = None
    scheduled_date: date | None = Field(default=None, index=True)
    scheduled_time: time | None = None
    position: int = 0
    target_word_count: int | None = None
    tone: str | None = None
    notes: str | None = None
    error_message: str | None = None
    generation_attempts: int = 0
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def scheduled_at(self) -> datetime | None:
        """Combined scheduled date and time (midnight when no time is set)."""
        if self.scheduled_date is None:
            return None
        return datetime.combine(self.scheduled_date, self.scheduled_time or time.min)


class Integration(SQLModel, table=True):
    """An external publishing destination configured for a project."""

    id: int | None = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="project.id", index=True)
    type: str  # IntegrationType value
    name: str
    credentials_json: str = "{}"
    settings_json: str = "{}"
    is_active: bool = True
    last_connected_at: datetime | None = None

    @property
    def credentials(self) -> dict:
        return json.loads(self.credentials_json or "{}")

    @property
    def settings(self) -> dict:
        return json.loads(self.settings_json or "{}")


class Publication(SQLModel, table=True):
    """Outcome of publishing one article to one integration."""

    id: int | None = Field(default=None, primary_key=True)
    article_id: int = Field(foreign_key="article.id", index=True)
    integration_id: int = Field(foreign_key="integration.id", index=True)
    status: PublicationStatus = PublicationStatus.PENDING
    external_id: str | None = None
    external_url: str | None = None
    error_message: str | None = None
    payload_json: str | None = None
    response_json: str | None = None
    published_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class QueuedTask(SQLModel, table=True):
    """A unit of asynchronous work waiting for a worker."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True)  # generate_article | publish_article
    payload_json: str = "{}"
    unique_key: str | None = Field(default=None, index=True)
    status: str = Field(default="pending", index=True)  # pending | running | done | failed
    attempts: int = 0
    available_at: datetime = Field(default_factory=datetime.now, index=True)
    last_error: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def payload(self) -> dict:
        return json.loads(self.payload_json or "{}")
