"""Resolve the AI provider a project should use for text generation."""

from __future__ import annotations

from sqlmodel import Session, select

from opencopy.storage.models import AiProvider, Project


def _usable(provider: AiProvider | None) -> bool:
    return provider is not None and provider.is_active and provider.supports_text


def resolve_text_provider(session: Session, project: Project) -> AiProvider | None:
    """Return the project's effective text provider, or None.

    Priority: the project's own default, then the owner's default provider,
    then the owner's first active text-capable provider.
    """
    if project.default_ai_provider_id is not None:
        provider = session.get(AiProvider, project.default_ai_provider_id)
        if _usable(provider):
            return provider

    candidates = session.exec(
        select(AiProvider)
        .where(AiProvider.user_id == project.user_id)
        .where(AiProvider.is_active == True)  # noqa: E712
        .where(AiProvider.supports_text == True)  # noqa: E712
        .order_by(AiProvider.is_default.desc(), AiProvider.id)
    ).all()
    return candidates[0] if candidates else None
