"""Infer a default content type from keyword text."""

from __future__ import annotations

import re
from typing import Callable

from opencopy.content.types import ContentType

_LISTICLE_PATTERN = re.compile(r"\d+\s+(ways|tips|ideas|reasons)")


def _contains(*needles: str) -> Callable[[str], bool]:
    return lambda text: any(needle in text for needle in needles)


# Evaluated in order, first match wins.
RULES: list[tuple[Callable[[str], bool], ContentType]] = [
    (_contains("how to", "guide"), ContentType.HOW_TO),
    (_contains("vs", "versus", "compared"), ContentType.COMPARISON),
    (
        lambda text: _contains("best", "top")(text) or bool(_LISTICLE_PATTERN.search(text)),
        ContentType.LISTICLE,
    ),
    (_contains("review"), ContentType.REVIEW),
    (_contains("case study", "success story"), ContentType.CASE_STUDY),
    (_contains("news", "update", "announcement"), ContentType.NEWS_ARTICLE),
    (_contains("complete guide", "ultimate", "everything"), ContentType.PILLAR_CONTENT),
]


def classify(keyword: str) -> ContentType:
    """Return the content type suggested by a keyword, defaulting to a blog post."""
    text = keyword.lower()
    for matches, content_type in RULES:
        if matches(text):
            return content_type
    return ContentType.BLOG_POST
