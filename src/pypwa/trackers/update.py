"""Background-update worker lifecycle tracking.

Phases, as seen by the page::

    idle -> registering -> installing -> installed-waiting -> activating -> active

``installed-waiting`` is reached when a new worker finishes installing
while an older one still controls the page; that is the moment an update
becomes available. Leaving it requires an explicit ``apply_update()``,
and once the new worker takes control the page is reloaded exactly once:
old page code never runs under a new worker. The same applies when the
waiting worker is activated from another page; a controller change with
no update waiting (a first install claiming the page) is ignored.

A newer install arriving while an update waits keeps the phase at
``installed-waiting``.

Registration failures are not raised. The tracker keeps the error in
``registration_error``, moves to ``failed`` and update features stay
off for the session.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pypwa.config import LifecycleConfig
from pypwa.exceptions import PlatformCallError, RegistrationFailureError
from pypwa.models.snapshot import CapabilityStatus, UpdateOutcome, UpdatePhase, WorkerState
from pypwa.platform import BrowserPlatform, Listener, ServiceWorker, ServiceWorkerContainer, ServiceWorkerRegistration
from pypwa.state.events import EventKind, EventSource, LifecycleEvent

_logger = logging.getLogger(__name__)


class UpdateTracker:
    def __init__(
        self,
        platform: BrowserPlatform,
        config: LifecycleConfig,
        *,
        on_change: Callable[[LifecycleEvent], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._platform = platform
        self._config = config
        self._on_change = on_change
        self._logger = logger or _logger
        self._loop: asyncio.AbstractEventLoop | None = None
        self._container: ServiceWorkerContainer | None = None
        self._registration: ServiceWorkerRegistration | None = None
        self._register_task: asyncio.Task[None] | None = None
        self._workers: list[tuple[ServiceWorker, Listener]] = []
        self._waiting: ServiceWorker | None = None
        self._phase = UpdatePhase.IDLE
        self._update_available = False
        self._offline_ready = False
        self._apply_requested = False
        self._apply_future: asyncio.Future[bool] | None = None
        self._reload_handle: asyncio.Handle | None = None
        self._reload_scheduled = False
        self.registration_error: RegistrationFailureError | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def phase(self) -> UpdatePhase:
        return self._phase

    @property
    def is_update_available(self) -> bool:
        """Once true, stays true until the page reloads."""
        return self._update_available

    @property
    def is_offline_ready(self) -> bool:
        return self._offline_ready

    @property
    def reload_scheduled(self) -> bool:
        return self._reload_scheduled

    @property
    def capability(self) -> CapabilityStatus:
        if self._phase == UpdatePhase.UNSUPPORTED:
            return CapabilityStatus.ABSENT
        if self._phase == UpdatePhase.FAILED:
            return CapabilityStatus.FAILED
        return CapabilityStatus.AVAILABLE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._loop is not None:
            return
        self._loop = loop

        container = self._platform.service_worker
        if container is None:
            self._logger.debug("Background-worker API absent; update features disabled")
            self._phase = UpdatePhase.UNSUPPORTED
            return
        if not self._config.register_service_worker:
            self._logger.debug("Worker registration disabled by configuration")
            self._phase = UpdatePhase.UNSUPPORTED
            return

        self._container = container
        container.add_event_listener("controllerchange", self._handle_controller_change)
        self._phase = UpdatePhase.REGISTERING
        self._register_task = loop.create_task(self._register())

    def stop(self) -> None:
        if self._register_task is not None and not self._register_task.done():
            self._register_task.cancel()
        self._register_task = None

        if self._container is not None:
            self._container.remove_event_listener("controllerchange", self._handle_controller_change)
        if self._registration is not None:
            self._registration.remove_event_listener("updatefound", self._handle_update_found)
        for worker, listener in self._workers:
            worker.remove_event_listener("statechange", listener)
        self._workers.clear()

        if self._reload_handle is not None:
            self._reload_handle.cancel()
            self._reload_handle = None
        if self._apply_future is not None and not self._apply_future.done():
            self._apply_future.set_result(False)

    async def _register(self) -> None:
        container = self._container
        if container is None:
            return
        script_url = self._config.service_worker_url
        try:
            registration = await container.register(script_url, scope=self._config.service_worker_scope)
        except Exception as exc:
            self.registration_error = RegistrationFailureError(
                f"registering {script_url!r} failed: {exc}",
                script_url=script_url,
            )
            self._logger.warning("Background worker registration failed: %s", exc)
            self._logger.debug("Registration failure details", exc_info=True)
            self._phase = UpdatePhase.FAILED
            self._emit(EventKind.REGISTRATION_FAILED, error=str(exc))
            return

        self._registration = registration
        self._logger.debug("Background worker registered (scope=%s)", self._config.service_worker_scope)
        registration.add_event_listener("updatefound", self._handle_update_found)

        # A worker may already be waiting from a previous visit, or mid-install.
        if registration.waiting is not None and container.controller is not None:
            self._track(registration.waiting)
            return
        if registration.installing is not None:
            self._track(registration.installing)
            return
        self._set_phase(UpdatePhase.ACTIVE if container.controller is not None else UpdatePhase.IDLE)

    # ------------------------------------------------------------------
    # Platform events
    # ------------------------------------------------------------------

    def _handle_update_found(self, _event: Any) -> None:
        registration = self._registration
        if registration is None or registration.installing is None:
            return
        self._track(registration.installing)

    def _track(self, worker: ServiceWorker) -> None:
        if any(tracked is worker for tracked, _ in self._workers):
            return

        def listener(_event: Any) -> None:
            self._handle_worker_state(worker)

        worker.add_event_listener("statechange", listener)
        self._workers.append((worker, listener))
        if WorkerState(worker.state) in (WorkerState.UNKNOWN, WorkerState.PARSED, WorkerState.INSTALLING):
            # A newer install does not replace an update that is already waiting.
            if not self._holding_update():
                self._set_phase(UpdatePhase.INSTALLING)
            return
        # The worker advanced before we attached.
        self._handle_worker_state(worker)

    def _holding_update(self) -> bool:
        return self._waiting is not None and not self._apply_requested

    def _untrack(self, worker: ServiceWorker) -> None:
        remaining: list[tuple[ServiceWorker, Listener]] = []
        for tracked, listener in self._workers:
            if tracked is worker:
                worker.remove_event_listener("statechange", listener)
            else:
                remaining.append((tracked, listener))
        self._workers = remaining

    def _handle_worker_state(self, worker: ServiceWorker) -> None:
        state = WorkerState(worker.state)
        self._logger.debug("Worker state -> %s", state)
        controller = self._container.controller if self._container is not None else None

        if state == WorkerState.INSTALLED:
            if controller is not None:
                self._mark_waiting(worker)
            elif not self._offline_ready:
                # First install on this page: nothing to replace, the app now works offline.
                self._offline_ready = True
                self._emit(EventKind.OFFLINE_READY)
        elif state == WorkerState.ACTIVATING:
            if worker is not self._waiting or self._apply_requested:
                self._set_phase(UpdatePhase.ACTIVATING)
        elif state == WorkerState.ACTIVATED:
            self._untrack(worker)
            if worker is not self._waiting:
                self._set_phase(UpdatePhase.ACTIVE)
        elif state == WorkerState.REDUNDANT:
            self._untrack(worker)
            was_waiting = worker is self._waiting
            if was_waiting:
                self._waiting = None
            if self._holding_update():
                return
            if self._workers:
                # A newer worker is still on its way.
                self._set_phase(UpdatePhase.INSTALLING)
            elif was_waiting or self._phase == UpdatePhase.INSTALLING:
                self._set_phase(UpdatePhase.ACTIVE if controller is not None else UpdatePhase.IDLE)

    def _mark_waiting(self, worker: ServiceWorker) -> None:
        self._waiting = worker
        if self._update_available:
            self._set_phase(UpdatePhase.INSTALLED_WAITING)
            return
        self._set_phase(UpdatePhase.INSTALLED_WAITING, emit=False)
        self._update_available = True
        self._logger.info("Update installed and waiting to activate")
        self._emit(EventKind.UPDATE_READY)

    def _handle_controller_change(self, _event: Any) -> None:
        applied_elsewhere = not self._apply_requested
        if applied_elsewhere:
            if self._waiting is None:
                # First install claiming the page, or a worker we never saw waiting.
                self._logger.debug("controllerchange without a waiting update; ignoring")
                return
            self._logger.info("Waiting update was activated by another page")
        waiting = self._waiting
        self._waiting = None
        if waiting is not None:
            self._untrack(waiting)
        self._set_phase(UpdatePhase.ACTIVE, emit=False)
        if self._apply_future is not None and not self._apply_future.done():
            self._apply_future.set_result(True)
        self._schedule_reload()
        self._emit(EventKind.CONTROLLER_CHANGED, applied_elsewhere=applied_elsewhere)

    def _schedule_reload(self) -> None:
        if self._reload_scheduled or not self._config.reload_on_update:
            return
        self._reload_scheduled = True
        if self._loop is None:
            self._reload()
            return
        self._reload_handle = self._loop.call_soon(self._reload)

    def _reload(self) -> None:
        self._reload_handle = None
        self._logger.info("Reloading to run the updated version")
        try:
            self._platform.reload()
        except Exception:
            self._logger.debug("Page reload failed", exc_info=True)

    # ------------------------------------------------------------------
    # Action
    # ------------------------------------------------------------------

    def _post_skip_waiting(self, worker: ServiceWorker) -> None:
        try:
            worker.post_message({"type": self._config.skip_waiting_message})
        except Exception as exc:
            raise PlatformCallError(f"posting skip-waiting failed: {exc}", operation="post_message") from exc

    async def apply_update(self) -> UpdateOutcome:
        """Tell the waiting worker to take control and wait for the handoff.

        Not cancellable: once the message is posted the page is expected
        to reload.
        """
        if self._apply_future is not None:
            applied = await asyncio.shield(self._apply_future)
            return UpdateOutcome.APPLIED if applied else UpdateOutcome.UNAVAILABLE

        waiting = self._waiting
        if waiting is None or self._container is None:
            return UpdateOutcome.UNAVAILABLE

        self._apply_requested = True
        self._apply_future = asyncio.get_running_loop().create_future()
        self._set_phase(UpdatePhase.ACTIVATING)
        try:
            self._post_skip_waiting(waiting)
        except PlatformCallError:
            self._logger.debug("Could not activate the waiting worker", exc_info=True)
            self._apply_requested = False
            self._apply_future = None
            self._set_phase(UpdatePhase.INSTALLED_WAITING)
            return UpdateOutcome.UNAVAILABLE

        applied = await self._apply_future
        if applied:
            self._logger.info("Update applied")
        return UpdateOutcome.APPLIED if applied else UpdateOutcome.UNAVAILABLE

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_phase(self, phase: UpdatePhase, *, emit: bool = True) -> None:
        if phase == self._phase:
            return
        self._logger.debug("Update phase %s -> %s", self._phase, phase)
        self._phase = phase
        if emit:
            self._emit(EventKind.UPDATE_PHASE_CHANGED)

    def _emit(self, kind: EventKind, **data: Any) -> None:
        self._on_change(
            LifecycleEvent(
                source=EventSource.UPDATE,
                kind=kind,
                data={"phase": self._phase.value, "update_available": self._update_available, **data},
            )
        )
