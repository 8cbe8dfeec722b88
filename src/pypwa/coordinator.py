"""Lifecycle coordinator: the one object UI surfaces depend on."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pypwa.config import LifecycleConfig
from pypwa.models.snapshot import InstallOutcome, LifecycleSnapshot, UpdateOutcome
from pypwa.platform import BrowserPlatform, supports_install
from pypwa.state.events import EventKind, EventSource, LifecycleEvent
from pypwa.trackers.dismissal import DismissalStore
from pypwa.trackers.install import InstallabilityTracker
from pypwa.trackers.network import NetworkMonitor
from pypwa.trackers.update import UpdateTracker

_logger = logging.getLogger(__name__)

SnapshotListener = Callable[[LifecycleSnapshot], None]


class LifecycleCoordinator:
    """Composes install, update, network and dismissal state.

    Create one per page load and pass it to every UI surface::

        async with LifecycleCoordinator(platform) as coordinator:
            unsubscribe = coordinator.subscribe(render)
            ...

    Every tracker event produces a new :class:`LifecycleSnapshot` and
    subscribers are called synchronously, once per event. Actions
    delegate to the owning tracker and recompute before returning.
    The coordinator closes itself on the window ``pagehide`` event.
    """

    def __init__(
        self,
        platform: BrowserPlatform,
        config: LifecycleConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._platform = platform
        self._config = config or LifecycleConfig()
        self._logger = logger or _logger
        self._loop: asyncio.AbstractEventLoop | None = None
        self._subscribers: list[SnapshotListener] = []
        self._snapshot = LifecycleSnapshot()
        self._last_event: LifecycleEvent | None = None
        self._started = False
        self._closed = False

        self._dismissals = DismissalStore(platform, self._config, on_change=self._on_event, logger=self._logger)
        self._network = NetworkMonitor(platform, self._config, on_change=self._on_event, logger=self._logger)
        self._install = InstallabilityTracker(platform, self._config, on_change=self._on_event, logger=self._logger)
        self._updates = UpdateTracker(platform, self._config, on_change=self._on_event, logger=self._logger)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> LifecycleCoordinator:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    def start(self) -> None:
        """Subscribe to platform events. Must run inside the event loop."""
        if self._started:
            return
        self._loop = asyncio.get_running_loop()
        self._network.start(self._loop)
        self._install.start(self._loop)
        self._updates.start(self._loop)
        self._platform.window.add_event_listener("pagehide", self._handle_pagehide)
        self._started = True
        self._publish(LifecycleEvent(source=EventSource.COORDINATOR, kind=EventKind.STARTED))

    def close(self) -> None:
        """Unregister every listener and cancel every pending timer."""
        if self._closed:
            return
        self._closed = True
        self._network.stop()
        self._install.stop()
        self._updates.stop()
        self._platform.window.remove_event_listener("pagehide", self._handle_pagehide)
        self._subscribers.clear()
        self._logger.debug("Lifecycle coordinator closed")

    def _handle_pagehide(self, _event: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def platform(self) -> BrowserPlatform:
        return self._platform

    @property
    def config(self) -> LifecycleConfig:
        return self._config

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def install_tracker(self) -> InstallabilityTracker:
        return self._install

    @property
    def update_tracker(self) -> UpdateTracker:
        return self._updates

    @property
    def network_monitor(self) -> NetworkMonitor:
        return self._network

    @property
    def dismissals(self) -> DismissalStore:
        return self._dismissals

    @property
    def last_event(self) -> LifecycleEvent | None:
        return self._last_event

    @property
    def snapshot(self) -> LifecycleSnapshot:
        """Current state, re-reading values the platform does not announce.

        Reading never notifies subscribers: a change found here (e.g. the
        display mode) carries the last published ``revision`` until
        :meth:`refresh` publishes it.
        """
        if not self._started or self._closed:
            return self._snapshot
        return self._compute(self._snapshot.revision)

    def refresh(self) -> LifecycleSnapshot:
        """Recompute and republish if something changed.

        The platform does not announce display-mode changes; hosts call this
        when they may have happened (e.g. on ``visibilitychange``).
        """
        if not self._started or self._closed:
            return self._snapshot
        candidate = self._compute(self._snapshot.revision)
        if candidate != self._snapshot:
            self._publish(None)
        return self._snapshot

    def _compute(self, revision: int) -> LifecycleSnapshot:
        dismissal = self._dismissals.record()
        return LifecycleSnapshot(
            is_installable=self._install.is_installable,
            is_installed=self._install.is_installed,
            is_offline=self._network.is_offline,
            is_slow_connection=self._network.is_slow_connection,
            connection_type=self._network.connection_type,
            is_update_available=self._updates.is_update_available,
            has_pending_install_action=self._install.has_pending_install_action,
            install_requires_manual_steps=self._install.requires_manual_steps,
            is_offline_ready=self._updates.is_offline_ready,
            display_mode=self._install.display_mode,
            can_install=supports_install(self._platform),
            update_phase=self._updates.phase,
            permanently_dismissed=dismissal.permanent,
            session_dismissed=dismissal.session,
            install_capability=self._install.capability,
            update_capability=self._updates.capability,
            connection_capability=self._network.capability,
            revision=revision,
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: SnapshotListener, *, replay: bool = True) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it.

        With ``replay`` the listener is called immediately with the
        current snapshot.
        """
        self._subscribers.append(listener)
        if replay:
            self._deliver(listener, self._snapshot)

        def unsubscribe() -> None:
            self._subscribers = [cand for cand in self._subscribers if cand is not listener]

        return unsubscribe

    def _on_event(self, event: LifecycleEvent) -> None:
        if self._closed:
            self._logger.debug("Dropping %s/%s after close", event.source, event.kind)
            return
        if not self._started:
            return
        self._publish(event)

    def _publish(self, event: LifecycleEvent | None) -> None:
        if event is not None:
            self._last_event = event
        self._snapshot = self._compute(self._snapshot.revision + 1)
        self._logger.debug(
            "Snapshot r%d after %s: %s",
            self._snapshot.revision,
            event.kind if event is not None else "refresh",
            self._snapshot.model_dump(mode="json", exclude={"revision"}),
        )
        snapshot = self._snapshot
        for listener in list(self._subscribers):
            self._deliver(listener, snapshot)

    def _deliver(self, listener: SnapshotListener, snapshot: LifecycleSnapshot) -> None:
        try:
            listener(snapshot)
        except Exception:
            self._logger.debug("Snapshot subscriber failed", exc_info=True)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def install(self) -> InstallOutcome:
        outcome = await self._install.install()
        self.refresh()
        return outcome

    async def apply_update(self) -> UpdateOutcome:
        outcome = await self._updates.apply_update()
        self.refresh()
        return outcome

    def dismiss_session(self) -> None:
        self._dismissals.dismiss_for_session()
        self.refresh()

    def dismiss_permanent(self) -> None:
        self._dismissals.dismiss_permanently()
        self.refresh()

    def reset_dismissals(self) -> None:
        """Clear both dismissal flags (diagnostics/testing only)."""
        self._dismissals.reset()
        self.refresh()
