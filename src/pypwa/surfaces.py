"""Gates for the UI surfaces that consume lifecycle state.

The coordinator does not suppress duplicate prompts; surfaces do, by
rendering only when these predicates allow it:

* the install modal, while installable and not permanently dismissed;
* the floating install button, only after the modal was permanently
  dismissed, and not after its own session dismissal;
* the update banner, whenever an update is waiting, until applied or
  closed for the current page view;
* the status panel, always.

The gate classes add the delayed appearance and per-view state around
those predicates. They must be created inside the running event loop,
and ``close()`` cancels their timers.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from pypwa.coordinator import LifecycleCoordinator
from pypwa.models.snapshot import InstallOutcome, LifecycleSnapshot, UpdateOutcome
from pypwa.platform import BrowserPlatform, is_ios_device

_logger = logging.getLogger(__name__)

IOS_INSTALL_HINT = "Tap the Share button, then choose 'Add to Home Screen'."
BROWSER_INSTALL_HINT = "Open the browser menu and choose 'Install app' or 'Add to Home screen'."


def can_show_install_modal(snapshot: LifecycleSnapshot) -> bool:
    return snapshot.is_installable and not snapshot.is_installed and not snapshot.permanently_dismissed


def can_show_floating_button(snapshot: LifecycleSnapshot) -> bool:
    return (
        snapshot.is_installable
        and not snapshot.is_installed
        and snapshot.permanently_dismissed
        and not snapshot.session_dismissed
    )


def can_show_update_banner(snapshot: LifecycleSnapshot) -> bool:
    return snapshot.is_update_available


def manual_install_hint(platform: BrowserPlatform) -> str:
    """Instructions shown when ``install()`` returns ``UNAVAILABLE``."""
    if is_ios_device(platform):
        return IOS_INSTALL_HINT
    return BROWSER_INSTALL_HINT


def status_rows(snapshot: LifecycleSnapshot) -> list[tuple[str, str]]:
    """Read-only rows for the status panel."""
    return [
        ("Connection Status", "Offline" if snapshot.is_offline else "Online"),
        ("Connection Type", snapshot.connection_type.value),
        ("App Installation", "Installed" if snapshot.is_installed else "Browser"),
        ("Display Mode", snapshot.display_mode.value),
        ("Updates", "Update available" if snapshot.is_update_available else "Up to date"),
        ("Offline Ready", "Yes" if snapshot.is_offline_ready else "No"),
    ]


class _SurfaceGate(ABC):
    """Subscribes to the coordinator and owns at most one reveal timer."""

    def __init__(self, coordinator: LifecycleCoordinator, *, delay: float = 0.0) -> None:
        self._coordinator = coordinator
        self._delay = delay
        self._loop = asyncio.get_running_loop()
        self._timer: asyncio.TimerHandle | None = None
        self._closed = False
        self.visible = False
        self._unsubscribe = coordinator.subscribe(self._on_snapshot)

    @abstractmethod
    def _allowed(self, snapshot: LifecycleSnapshot) -> bool:
        """Whether the surface may show for *snapshot*."""

    def _on_snapshot(self, snapshot: LifecycleSnapshot) -> None:
        if not self._allowed(snapshot):
            self._cancel_timer()
            self.visible = False
            return
        if self.visible or self._timer is not None:
            return
        if self._delay <= 0:
            self.visible = True
            return
        self._timer = self._loop.call_later(self._delay, self._reveal)

    def _reveal(self) -> None:
        self._timer = None
        if self._closed:
            return
        self.visible = self._allowed(self._coordinator.snapshot)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def close(self) -> None:
        self._closed = True
        self._cancel_timer()
        self._unsubscribe()
        self.visible = False


class InstallModalGate(_SurfaceGate):
    """Primary install modal.

    "Not now" and the install button hide the modal for this page view
    only; the close button dismisses it permanently.
    """

    def __init__(self, coordinator: LifecycleCoordinator, *, delay: float | None = None) -> None:
        self._hidden_for_view = False
        self.manual_hint: str | None = None
        super().__init__(coordinator, delay=coordinator.config.modal_delay if delay is None else delay)

    def _allowed(self, snapshot: LifecycleSnapshot) -> bool:
        return not self._hidden_for_view and can_show_install_modal(snapshot)

    async def install(self) -> InstallOutcome:
        outcome = await self._coordinator.install()
        if outcome == InstallOutcome.UNAVAILABLE:
            self.manual_hint = manual_install_hint(self._coordinator.platform)
        self._hide_for_view()
        return outcome

    def not_now(self) -> None:
        self._hide_for_view()

    def dismiss(self) -> None:
        self._hide_for_view()
        self._coordinator.dismiss_permanent()

    def _hide_for_view(self) -> None:
        self._hidden_for_view = True
        self._cancel_timer()
        self.visible = False


class FloatingInstallGate(_SurfaceGate):
    """Secondary floating install button."""

    def __init__(self, coordinator: LifecycleCoordinator, *, delay: float | None = None) -> None:
        self.manual_hint: str | None = None
        super().__init__(coordinator, delay=coordinator.config.floating_button_delay if delay is None else delay)

    def _allowed(self, snapshot: LifecycleSnapshot) -> bool:
        return can_show_floating_button(snapshot)

    async def install(self) -> InstallOutcome:
        outcome = await self._coordinator.install()
        if outcome == InstallOutcome.ACCEPTED:
            self.visible = False
        elif outcome == InstallOutcome.UNAVAILABLE:
            self.manual_hint = manual_install_hint(self._coordinator.platform)
        return outcome

    def dismiss(self) -> None:
        self._cancel_timer()
        self.visible = False
        self._coordinator.dismiss_session()


class UpdateBannerGate(_SurfaceGate):
    """Update banner. Closing it lasts for this page view only."""

    def __init__(self, coordinator: LifecycleCoordinator) -> None:
        self._closed_for_view = False
        super().__init__(coordinator)

    def _allowed(self, snapshot: LifecycleSnapshot) -> bool:
        return not self._closed_for_view and can_show_update_banner(snapshot)

    async def apply(self) -> UpdateOutcome:
        outcome = await self._coordinator.apply_update()
        if outcome == UpdateOutcome.APPLIED:
            self.visible = False
        return outcome

    def close_for_view(self) -> None:
        self._closed_for_view = True
        self.visible = False


class OfflineReadyToast(_SurfaceGate):
    """One-off notice that the app now works offline."""

    def __init__(self, coordinator: LifecycleCoordinator) -> None:
        self._acknowledged = False
        super().__init__(coordinator)

    def _allowed(self, snapshot: LifecycleSnapshot) -> bool:
        return not self._acknowledged and snapshot.is_offline_ready

    def acknowledge(self) -> None:
        self._acknowledged = True
        self.visible = False


def open_surfaces(coordinator: LifecycleCoordinator) -> tuple[list[_SurfaceGate], Callable[[], None]]:
    """Create every gate for one page view; returns them and a closer."""
    gates: list[_SurfaceGate] = [
        InstallModalGate(coordinator),
        FloatingInstallGate(coordinator),
        UpdateBannerGate(coordinator),
        OfflineReadyToast(coordinator),
    ]

    def close_all() -> None:
        for gate in gates:
            gate.close()
        _logger.debug("Closed %d surface gates", len(gates))

    return gates, close_all
