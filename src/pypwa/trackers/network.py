"""Connectivity and connection-quality monitor."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pypwa.config import LifecycleConfig
from pypwa.models.snapshot import CapabilityStatus, ConnectionType
from pypwa.platform import BrowserPlatform, NetworkInformation
from pypwa.state.events import EventKind, EventSource, LifecycleEvent
from pypwa.state.policy import classify_connection, is_slow

_logger = logging.getLogger(__name__)


class NetworkMonitor:
    """Tracks ``navigator.onLine`` and ``navigator.connection.effectiveType``.

    An ``online`` event pins the monitor online until the event loop's
    next iteration, so an ``offline`` delivered in the same pass is
    ignored. Without a loop, the last event simply wins.
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
        self._loop: asyncio.AbstractEventLoop | None = None
        self._connection: NetworkInformation | None = None
        self._on_line = True
        self._connection_type = ConnectionType.UNKNOWN
        self._pin_handle: asyncio.Handle | None = None
        self._listening = False

    @property
    def is_offline(self) -> bool:
        return not self._on_line

    @property
    def connection_type(self) -> ConnectionType:
        return self._connection_type

    @property
    def is_slow_connection(self) -> bool:
        return is_slow(self._connection_type, self._config.slow_connection_types)

    @property
    def capability(self) -> CapabilityStatus:
        if self._platform.connection is None:
            return CapabilityStatus.ABSENT
        return CapabilityStatus.AVAILABLE

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if self._listening:
            return
        self._loop = loop
        self._on_line = bool(self._platform.on_line)

        window = self._platform.window
        window.add_event_listener("online", self._handle_online)
        window.add_event_listener("offline", self._handle_offline)

        connection = self._platform.connection
        if connection is not None:
            self._connection = connection
            self._read_connection()
            connection.add_event_listener("change", self._handle_connection_change)
        else:
            self._logger.debug("Connection-quality API absent; connection type stays unknown")
        self._listening = True

    def stop(self) -> None:
        if not self._listening:
            return
        window = self._platform.window
        window.remove_event_listener("online", self._handle_online)
        window.remove_event_listener("offline", self._handle_offline)
        if self._connection is not None:
            self._connection.remove_event_listener("change", self._handle_connection_change)
            self._connection = None
        self._release_pin()
        self._listening = False

    def _read_connection(self) -> None:
        if self._connection is None:
            return
        effective_type = getattr(self._connection, "effective_type", None)
        self._connection_type = classify_connection(effective_type)

    def _release_pin(self) -> None:
        if self._pin_handle is not None:
            self._pin_handle.cancel()
            self._pin_handle = None

    def _handle_online(self, _event: Any) -> None:
        self._on_line = True
        if self._loop is not None:
            self._release_pin()
            self._pin_handle = self._loop.call_soon(self._release_pin)
        self._read_connection()
        self._logger.debug("online (connection=%s)", self._connection_type)
        self._emit(EventKind.ONLINE)

    def _handle_offline(self, _event: Any) -> None:
        if self._pin_handle is not None:
            self._logger.debug("offline ignored: online was reported in the same loop pass")
            return
        self._on_line = False
        self._logger.debug("offline")
        self._emit(EventKind.OFFLINE)

    def _handle_connection_change(self, _event: Any) -> None:
        previous = self._connection_type
        self._read_connection()
        self._logger.debug("connection change %s -> %s", previous, self._connection_type)
        self._emit(EventKind.CONNECTION_CHANGED)

    def _emit(self, kind: EventKind) -> None:
        self._on_change(
            LifecycleEvent(
                source=EventSource.NETWORK,
                kind=kind,
                data={"offline": self.is_offline, "connection_type": self._connection_type.value},
            )
        )
