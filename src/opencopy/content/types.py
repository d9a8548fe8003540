"""Enumerations shared across the content pipeline."""

from __future__ import annotations

from enum import Enum


class ContentStatus(str, Enum):
    BACKLOG = "backlog"
    SCHEDULED = "scheduled"
    QUEUED = "queued"
    GENERATING = "generating"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    PUBLISHED = "published"
    FAILED = "failed"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def is_editable(self) -> bool:
        return self in _EDITABLE

    @property
    def is_terminal(self) -> bool:
        return self is ContentStatus.PUBLISHED

    def can_transition_to(self, target: ContentStatus) -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[ContentStatus, frozenset[ContentStatus]] = {
    ContentStatus.BACKLOG: frozenset({ContentStatus.SCHEDULED}),
    ContentStatus.SCHEDULED: frozenset(
        {ContentStatus.BACKLOG, ContentStatus.QUEUED, ContentStatus.GENERATING}
    ),
    ContentStatus.QUEUED: frozenset(
        {ContentStatus.GENERATING, ContentStatus.SCHEDULED, ContentStatus.FAILED}
    ),
    ContentStatus.GENERATING: frozenset({ContentStatus.IN_REVIEW, ContentStatus.FAILED}),
    ContentStatus.IN_REVIEW: frozenset({ContentStatus.APPROVED, ContentStatus.SCHEDULED}),
    ContentStatus.APPROVED: frozenset({ContentStatus.PUBLISHED, ContentStatus.IN_REVIEW}),
    ContentStatus.PUBLISHED: frozenset(),
    ContentStatus.FAILED: frozenset({ContentStatus.SCHEDULED, ContentStatus.BACKLOG}),
}

_EDITABLE = frozenset(
    {
        ContentStatus.BACKLOG,
        ContentStatus.SCHEDULED,
        ContentStatus.IN_REVIEW,
        ContentStatus.APPROVED,
        ContentStatus.FAILED,
    }
)


class ContentType(str, Enum):
    BLOG_POST = "blog_post"
    LISTICLE = "listicle"
    HOW_TO = "how_to"
    COMPARISON = "comparison"
    CASE_STUDY = "case_study"
    REVIEW = "review"
    NEWS_ARTICLE = "news_article"
    PILLAR_CONTENT = "pillar_content"

    @property
    def suggested_word_count(self) -> int:
        return _SUGGESTED_WORD_COUNTS[self]


_SUGGESTED_WORD_COUNTS = {
    ContentType.BLOG_POST: 1500,
    ContentType.LISTICLE: 2000,
    ContentType.HOW_TO: 2500,
    ContentType.COMPARISON: 2000,
    ContentType.CASE_STUDY: 2500,
    ContentType.REVIEW: 1800,
    ContentType.NEWS_ARTICLE: 800,
    ContentType.PILLAR_CONTENT: 4000,
}


class AutoPublishMode(str, Enum):
    OFF = "off"
    SCHEDULED = "scheduled"
    IMMEDIATE = "immediate"


class IntegrationType(str, Enum):
    WEBHOOK = "webhook"
    WORDPRESS = "wordpress"
    WEBFLOW = "webflow"
    SHOPIFY = "shopify"
    WIX = "wix"


class PublicationStatus(str, Enum):
    PENDING = "pending"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PublicationStatus.PUBLISHED, PublicationStatus.FAILED)
