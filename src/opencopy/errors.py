"""Exception hierarchy for the content pipeline."""

from __future__ import annotations


class OpenCopyError(Exception):
    """Base class for all pipeline errors."""


class StoreUnavailableError(OpenCopyError):
    """The content store could not be queried. Fatal for the current scan."""


class InvalidTransitionError(OpenCopyError):
    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move content from '{current}' to '{target}'")


class UnsupportedIntegrationError(OpenCopyError):
    def __init__(self, integration_type: str) -> None:
        self.integration_type = integration_type
        super().__init__(
            f"No publisher registered for integration type: {integration_type}"
        )


class TaskNotFoundError(OpenCopyError):
    """A queued task referenced a record that no longer exists."""
