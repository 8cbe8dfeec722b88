"""pypwa - install, update and connectivity lifecycle for installable web apps."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pypwa")
except PackageNotFoundError:
    __version__ = "0+local"

from pypwa.config import LifecycleConfig
from pypwa.coordinator import LifecycleCoordinator
from pypwa.exceptions import (
    PersistenceError,
    PlatformCallError,
    PwaConfigError,
    PwaError,
    RegistrationFailureError,
)
from pypwa.models import (
    CapabilityStatus,
    ConnectionType,
    DismissalRecord,
    DisplayMode,
    InstallOutcome,
    LifecycleSnapshot,
    UpdateOutcome,
    UpdatePhase,
)
from pypwa.platform import BrowserPlatform, EventTarget

__all__ = [
    "__version__",
    "BrowserPlatform",
    "CapabilityStatus",
    "ConnectionType",
    "DismissalRecord",
    "DisplayMode",
    "EventTarget",
    "InstallOutcome",
    "LifecycleConfig",
    "LifecycleCoordinator",
    "LifecycleSnapshot",
    "PersistenceError",
    "PlatformCallError",
    "PwaConfigError",
    "PwaError",
    "RegistrationFailureError",
    "UpdateOutcome",
    "UpdatePhase",
]
