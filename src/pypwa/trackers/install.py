"""Installability tracking and the one-shot install action."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pypwa.config import LifecycleConfig
from pypwa.exceptions import PlatformCallError
from pypwa.models.snapshot import CapabilityStatus, DisplayMode, InstallOutcome
from pypwa.platform import BrowserPlatform, InstallPromptEvent, is_standalone, media_matches, supports_install
from pypwa.state.events import EventKind, EventSource, LifecycleEvent
from pypwa.state.policy import resolve_display_mode, resolve_installable

_logger = logging.getLogger(__name__)


async def _run_prompt(handle: InstallPromptEvent) -> str:
    try:
        await handle.prompt()
        return await handle.user_choice()
    except Exception as exc:
        raise PlatformCallError(f"install prompt failed: {exc}", operation="prompt") from exc


class InstallabilityTracker:
    """Captures ``beforeinstallprompt`` and exposes ``install()``.

    The captured event is single-use: ``install()`` discards it before
    prompting, so a second call without a fresh offer returns
    ``InstallOutcome.UNAVAILABLE``.

    When no offer arrives within ``config.install_grace_period`` and the
    platform passes :func:`~pypwa.platform.supports_install`, the tracker
    reports the app as installable without a handle. ``install()`` then
    returns ``UNAVAILABLE`` and ``requires_manual_steps`` is true so UI can
    show instructions instead.
    """

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
        self._handle: InstallPromptEvent | None = None
        self._installed_event_seen = False
        self._fallback_armed = False
        self._grace_handle: asyncio.TimerHandle | None = None
        self._offer_count = 0
        self._listening = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_installed(self) -> bool:
        """Re-evaluated on every read: display mode can change under us."""
        return self._installed_event_seen or is_standalone(self._platform)

    @property
    def is_installable(self) -> bool:
        return resolve_installable(
            has_handle=self._handle is not None,
            fallback_armed=self._fallback_armed,
            installed=self.is_installed,
        )

    @property
    def has_pending_install_action(self) -> bool:
        return self._handle is not None

    @property
    def requires_manual_steps(self) -> bool:
        return self._handle is None and self.is_installable

    @property
    def offer_count(self) -> int:
        return self._offer_count

    @property
    def display_mode(self) -> DisplayMode:
        return resolve_display_mode(lambda query: media_matches(self._platform, query))

    @property
    def capability(self) -> CapabilityStatus:
        if self._offer_count or supports_install(self._platform):
            return CapabilityStatus.AVAILABLE
        return CapabilityStatus.ABSENT

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if self._listening:
            return
        window = self._platform.window
        window.add_event_listener("beforeinstallprompt", self._handle_install_offer)
        window.add_event_listener("appinstalled", self._handle_app_installed)
        self._listening = True

        grace = self._config.install_grace_period
        if grace is None or loop is None or self.is_installed:
            return
        if not supports_install(self._platform):
            self._logger.debug("Install capability check failed; no fallback install affordance")
            return
        self._grace_handle = loop.call_later(grace, self._handle_grace_elapsed)

    def stop(self) -> None:
        self._cancel_grace()
        if not self._listening:
            return
        window = self._platform.window
        window.remove_event_listener("beforeinstallprompt", self._handle_install_offer)
        window.remove_event_listener("appinstalled", self._handle_app_installed)
        self._listening = False

    def _cancel_grace(self) -> None:
        if self._grace_handle is not None:
            self._grace_handle.cancel()
            self._grace_handle = None

    # ------------------------------------------------------------------
    # Platform events
    # ------------------------------------------------------------------

    def _handle_install_offer(self, event: Any) -> None:
        # The browser must not show its own mini-infobar.
        try:
            event.prevent_default()
        except Exception:
            self._logger.debug("preventDefault on beforeinstallprompt failed", exc_info=True)
        self._cancel_grace()
        self._handle = event
        self._fallback_armed = False
        self._offer_count += 1
        self._logger.debug("Install offered (offer #%d)", self._offer_count)
        self._emit(EventKind.INSTALL_OFFERED)

    def _handle_app_installed(self, _event: Any) -> None:
        self._cancel_grace()
        self._installed_event_seen = True
        self._handle = None
        self._fallback_armed = False
        self._logger.info("App installed")
        self._emit(EventKind.APP_INSTALLED)

    def _handle_grace_elapsed(self) -> None:
        self._grace_handle = None
        if self._handle is not None or self.is_installed:
            return
        self._fallback_armed = True
        self._logger.debug(
            "No install offer within %.1fs; reporting installable with manual steps",
            self._config.install_grace_period,
        )
        self._emit(EventKind.INSTALL_FALLBACK)

    # ------------------------------------------------------------------
    # Action
    # ------------------------------------------------------------------

    async def install(self) -> InstallOutcome:
        """Show the native install prompt and return the user's choice."""
        handle = self._handle
        if handle is None:
            if self._fallback_armed:
                self._logger.info("No install handle; manual installation steps required")
            return InstallOutcome.UNAVAILABLE

        self._handle = None
        self._fallback_armed = False
        self._emit(EventKind.INSTALL_PROMPTED)

        try:
            choice = await _run_prompt(handle)
        except PlatformCallError:
            self._logger.debug("Install prompt failed", exc_info=True)
            outcome = InstallOutcome.UNAVAILABLE
        else:
            outcome = InstallOutcome.ACCEPTED if choice == InstallOutcome.ACCEPTED.value else InstallOutcome.DISMISSED

        self._logger.info("Install prompt resolved: %s", outcome)
        self._emit(EventKind.INSTALL_RESOLVED, outcome=outcome.value)
        return outcome

    def _emit(self, kind: EventKind, **data: Any) -> None:
        self._on_change(
            LifecycleEvent(
                source=EventSource.INSTALL,
                kind=kind,
                data={"installable": self.is_installable, "installed": self.is_installed, **data},
            )
        )
