"""Data models for lifecycle state."""

from pypwa.models._base import PwaBaseModel, PwaEnum
from pypwa.models.dismissal import DismissalRecord
from pypwa.models.snapshot import (
    CapabilityStatus,
    ConnectionType,
    DisplayMode,
    InstallOutcome,
    LifecycleSnapshot,
    UpdateOutcome,
    UpdatePhase,
    WorkerState,
)

__all__ = [
    "CapabilityStatus",
    "ConnectionType",
    "DismissalRecord",
    "DisplayMode",
    "InstallOutcome",
    "LifecycleSnapshot",
    "PwaBaseModel",
    "PwaEnum",
    "UpdateOutcome",
    "UpdatePhase",
    "WorkerState",
]
