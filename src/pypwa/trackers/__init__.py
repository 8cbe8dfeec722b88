"""Per-signal trackers composed by the lifecycle coordinator."""

from pypwa.trackers.dismissal import DismissalStore
from pypwa.trackers.install import InstallabilityTracker
from pypwa.trackers.network import NetworkMonitor
from pypwa.trackers.update import UpdateTracker

__all__ = [
    "DismissalStore",
    "InstallabilityTracker",
    "NetworkMonitor",
    "UpdateTracker",
]
