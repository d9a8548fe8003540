"""Resolve the publisher implementation for an integration type."""

from __future__ import annotations

from typing import Callable

from opencopy.errors import UnsupportedIntegrationError
from opencopy.publishing.base import Publisher
from opencopy.publishing.webhook import WebhookPublisher
from opencopy.storage.models import Integration

PublisherBuilder = Callable[[], Publisher]


class PublisherFactory:
    """Registry of publisher builders keyed on integration type."""

    def __init__(self, builders: dict[str, PublisherBuilder] | None = None) -> None:
        self._builders: dict[str, PublisherBuilder] = (
            dict(builders) if builders is not None else {"webhook": WebhookPublisher}
        )

    @classmethod
    def from_settings(cls, settings: object) -> PublisherFactory:
        """Factory whose webhook publisher honours the configured HTTP options."""
        return cls(
            {
                "webhook": lambda: WebhookPublisher(
                    user_agent=settings.webhook_user_agent,
                    timeout=settings.webhook_timeout,
                    retry_times=settings.webhook_retry_times,
                ),
            }
        )

    def make(self, integration: Integration) -> Publisher:
        return self.make_for_type(integration.type)

    def make_for_type(self, integration_type: str) -> Publisher:
        builder = self._builders.get(integration_type)
        if builder is None:
            raise UnsupportedIntegrationError(integration_type)
        return builder()

    def supports(self, integration_type: str) -> bool:
        return integration_type in self._builders

    def register(self, integration_type: str, builder: PublisherBuilder) -> None:
        self._builders[integration_type] = builder

    def registered_types(self) -> list[str]:
        return list(self._builders)
