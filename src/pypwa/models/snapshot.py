"""Lifecycle snapshot model and the enums it carries."""

from __future__ import annotations

from pydantic import Field

from pypwa.models._base import PwaBaseModel, PwaEnum

# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class ConnectionType(PwaEnum):
    """Effective connection type reported by the connection-quality API."""

    UNKNOWN = "unknown"
    SLOW_2G = "slow-2g"
    TWO_G = "2g"
    THREE_G = "3g"
    FOUR_G = "4g"


class DisplayMode(PwaEnum):
    """How the page is being displayed."""

    BROWSER = "browser"
    STANDALONE = "standalone"
    MINIMAL_UI = "minimal-ui"
    FULLSCREEN = "fullscreen"


class CapabilityStatus(PwaEnum):
    """Availability of an optional platform feature."""

    AVAILABLE = "available"
    ABSENT = "absent"
    FAILED = "failed"  # present, but unusable for this session


class UpdatePhase(PwaEnum):
    """Background-update worker lifecycle as seen by the page."""

    UNSUPPORTED = "unsupported"
    FAILED = "failed"
    IDLE = "idle"
    REGISTERING = "registering"
    INSTALLING = "installing"
    INSTALLED_WAITING = "installed-waiting"
    ACTIVATING = "activating"
    ACTIVE = "active"


class WorkerState(PwaEnum):
    """``ServiceWorker.state`` values."""

    UNKNOWN = "unknown"
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class InstallOutcome(PwaEnum):
    """Result of an install action."""

    ACCEPTED = "accepted"
    DISMISSED = "dismissed"
    UNAVAILABLE = "unavailable"


class UpdateOutcome(PwaEnum):
    """Result of an apply-update action."""

    APPLIED = "applied"
    UNAVAILABLE = "unavailable"


# ------------------------------------------------------------------
# Snapshot
# ------------------------------------------------------------------


class LifecycleSnapshot(PwaBaseModel):
    """Immutable view of install, update and connectivity state.

    Built by :class:`~pypwa.coordinator.LifecycleCoordinator` after every
    platform event or action. UI surfaces read this and nothing else.
    """

    is_installable: bool = False
    is_installed: bool = False
    is_offline: bool = False
    is_slow_connection: bool = False
    connection_type: ConnectionType = ConnectionType.UNKNOWN
    is_update_available: bool = False
    has_pending_install_action: bool = False

    install_requires_manual_steps: bool = False
    is_offline_ready: bool = False
    display_mode: DisplayMode = DisplayMode.BROWSER
    can_install: bool = False
    update_phase: UpdatePhase = UpdatePhase.IDLE

    permanently_dismissed: bool = False
    session_dismissed: bool = False

    install_capability: CapabilityStatus = CapabilityStatus.ABSENT
    update_capability: CapabilityStatus = CapabilityStatus.ABSENT
    connection_capability: CapabilityStatus = CapabilityStatus.ABSENT

    revision: int = Field(default=0, ge=0, description="Incremented on every republish")
