"""Custom exception hierarchy for pypwa.

Missing platform features and actions without a live handle are not
exceptions: they surface as ``CapabilityStatus.ABSENT`` on the snapshot
and as ``UNAVAILABLE`` outcomes from actions.
"""

from __future__ import annotations


class PwaError(Exception):
    """Base exception for all pypwa errors."""


class PwaConfigError(PwaError):
    """Invalid configuration value."""


class PersistenceError(PwaError):
    """Dismissal storage read or write failed (e.g. storage disabled)."""

    def __init__(
        self,
        message: str,
        *,
        key: str = "",
        scope: str = "",
    ) -> None:
        self.key = key
        self.scope = scope
        super().__init__(message)


class RegistrationFailureError(PwaError):
    """Background-worker registration was rejected.

    Never propagated to callers: the update tracker keeps it as
    ``registration_error`` and degrades update features for the session.
    """

    def __init__(self, message: str, *, script_url: str = "") -> None:
        self.script_url = script_url
        super().__init__(message)


class PlatformCallError(PwaError):
    """A platform call made on behalf of an action failed."""

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        super().__init__(message)
