"""Shared test fixtures."""

from __future__ import annotations

import json
from datetime import date, datetime, time
from pathlib import Path

import pytest
import structlog
from sqlmodel import Session

from opencopy.config import Settings
from opencopy.content.types import AutoPublishMode, ContentStatus, ContentType
from opencopy.storage.database import _engines, get_session
from opencopy.storage.models import (
    AiProvider,
    Article,
    Integration,
    Keyword,
    Project,
    ScheduledContent,
    User,
)

# Tuesday morning; every scan test runs against this clock.
NOW = datetime(2025, 6, 10, 9, 0)
TODAY = NOW.date()


@pytest.fixture(autouse=True)
def _reset_logging():
    """CLI commands configure structlog globally; undo that between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Create test settings with a temporary database."""
    return Settings(db_path=tmp_path / "test.db")


@pytest.fixture
def session(settings: Settings):
    """A session on a fresh SQLite database."""
    _engines.clear()
    with get_session(settings.db_path) as s:
        yield s
    _engines.clear()


def make_project(
    session: Session,
    *,
    name: str = "Acme Blog",
    auto_publish: AutoPublishMode = AutoPublishMode.OFF,
    with_provider: bool = True,
) -> Project:
    """Create a user and a project, optionally with a default text provider."""
    user = User(name="Dana", email=f"{name.lower().replace(' ', '-')}@example.com")
    session.add(user)
    session.commit()
    session.refresh(user)

    if with_provider:
        make_provider(session, user.id, name="OpenAI GPT-4o", is_default=True)

    project = Project(user_id=user.id, name=name, auto_publish=auto_publish)
    session.add(project)
    session.commit()
    session.refresh(project)
    return project


def make_provider(session: Session, user_id: int, **fields) -> AiProvider:
    fields.setdefault("name", "Provider")
    provider = AiProvider(user_id=user_id, **fields)
    session.add(provider)
    session.commit()
    session.refresh(provider)
    return provider


def make_item(
    session: Session,
    project: Project,
    keyword: str,
    *,
    status: ContentStatus = ContentStatus.SCHEDULED,
    on: date | None = TODAY,
    at: time | None = None,
    with_article: bool = False,
    position: int = 0,
) -> ScheduledContent:
    """Create a keyword and a scheduled content item (plus an article if asked)."""
    record = Keyword(
        project_id=project.id,
        keyword=keyword,
        secondary_keywords_json=json.dumps(["extra tag", keyword]),
    )
    session.add(record)
    session.commit()
    session.refresh(record)

    article_id = None
    if with_article:
        article = Article(
            project_id=project.id,
            keyword_id=record.id,
            title=keyword.title(),
            slug=keyword.lower().replace(" ", "-"),
            content=f"<p>{keyword}</p>",
            content_markdown=keyword,
            word_count=1200,
            reading_time_minutes=6,
            created_at=NOW,
        )
        session.add(article)
        session.commit()
        session.refresh(article)
        article_id = article.id

    item = ScheduledContent(
        project_id=project.id,
        keyword_id=record.id,
        article_id=article_id,
        content_type=ContentType.BLOG_POST,
        status=status,
        scheduled_date=on,
        scheduled_time=at,
        position=position,
    )
    session.add(item)
    session.commit()
    session.refresh(item)
    return item


def make_webhook(session: Session, project: Project, **settings) -> Integration:
    """Create an active webhook integration with valid credentials."""
    settings.setdefault("retry_delay", 0)
    integration = Integration(
        project_id=project.id,
        type="webhook",
        name="Site hook",
        credentials_json=json.dumps(
            {"endpoint_url": "https://hooks.example.com/articles", "access_token": "s3cret"}
        ),
        settings_json=json.dumps(settings),
    )
    session.add(integration)
    session.commit()
    session.refresh(integration)
    return integration
