"""Normalized lifecycle events.

Every tracker reports changes as one of these events. Only the
coordinator consumes them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventSource(StrEnum):
    INSTALL = "install"
    UPDATE = "update"
    NETWORK = "network"
    DISMISSAL = "dismissal"
    COORDINATOR = "coordinator"


class EventKind(StrEnum):
    STARTED = "started"
    INSTALL_OFFERED = "install-offered"
    INSTALL_FALLBACK = "install-fallback"
    INSTALL_PROMPTED = "install-prompted"
    INSTALL_RESOLVED = "install-resolved"
    APP_INSTALLED = "app-installed"
    ONLINE = "online"
    OFFLINE = "offline"
    CONNECTION_CHANGED = "connection-changed"
    UPDATE_PHASE_CHANGED = "update-phase-changed"
    UPDATE_READY = "update-ready"
    OFFLINE_READY = "offline-ready"
    REGISTRATION_FAILED = "registration-failed"
    CONTROLLER_CHANGED = "controller-changed"
    DISMISSAL_CHANGED = "dismissal-changed"


class LifecycleEvent(BaseModel):
    """A single change reported by a tracker."""

    model_config = ConfigDict(frozen=True)

    source: EventSource
    kind: EventKind
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict, description="Event details for logs and subscribers")

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
