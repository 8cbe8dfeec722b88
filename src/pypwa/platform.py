"""Browser platform boundary.

pypwa never talks to a browser directly. A host (a Pyodide bridge, a
webview shell, a test harness) hands the coordinator an object
satisfying :class:`BrowserPlatform`, and delivers platform events by
calling :meth:`EventTarget.dispatch_event` on the relevant target.

Event types use the browser's names:

* ``platform.window``: ``beforeinstallprompt``, ``appinstalled``,
  ``online``, ``offline``, ``pagehide``
* ``platform.connection``: ``change``
* ``platform.service_worker``: ``controllerchange``
* registrations: ``updatefound``
* workers: ``statechange``
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

_logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]

STANDALONE_QUERY = "(display-mode: standalone)"
MINIMAL_UI_QUERY = "(display-mode: minimal-ui)"
FULLSCREEN_QUERY = "(display-mode: fullscreen)"


class EventTarget:
    """Minimal listener registry with browser ``EventTarget`` semantics.

    Listeners run synchronously in registration order. Registering the
    same callable twice for one type is a no-op, as in the browser.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type)
        if not listeners:
            return
        self._listeners[event_type] = [cand for cand in listeners if cand != listener]
        if not self._listeners[event_type]:
            self._listeners.pop(event_type, None)

    def listener_count(self, event_type: str | None = None) -> int:
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return sum(len(listeners) for listeners in self._listeners.values())

    def dispatch_event(self, event_type: str, event: Any = None) -> None:
        # Snapshot the list: listeners may unregister themselves while running.
        for listener in list(self._listeners.get(event_type, [])):
            listener(event)


@runtime_checkable
class InstallPromptEvent(Protocol):
    """The ``beforeinstallprompt`` event, i.e. the one-shot install handle."""

    def prevent_default(self) -> None: ...

    async def prompt(self) -> None: ...

    async def user_choice(self) -> str:
        """Resolve to ``"accepted"`` or ``"dismissed"``."""
        ...


class StorageArea(Protocol):
    """``localStorage`` / ``sessionStorage``. Any call may raise."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class NetworkInformation(Protocol):
    """``navigator.connection``; dispatches ``change``."""

    effective_type: str | None

    def add_event_listener(self, event_type: str, listener: Listener) -> None: ...

    def remove_event_listener(self, event_type: str, listener: Listener) -> None: ...


class ServiceWorker(Protocol):
    """A worker version; dispatches ``statechange``."""

    state: str

    def post_message(self, message: dict[str, Any]) -> None: ...

    def add_event_listener(self, event_type: str, listener: Listener) -> None: ...

    def remove_event_listener(self, event_type: str, listener: Listener) -> None: ...


class ServiceWorkerRegistration(Protocol):
    """Registration handle; dispatches ``updatefound``."""

    installing: ServiceWorker | None
    waiting: ServiceWorker | None
    active: ServiceWorker | None

    def add_event_listener(self, event_type: str, listener: Listener) -> None: ...

    def remove_event_listener(self, event_type: str, listener: Listener) -> None: ...


class ServiceWorkerContainer(Protocol):
    """``navigator.serviceWorker``; dispatches ``controllerchange``."""

    controller: ServiceWorker | None

    async def register(self, script_url: str, *, scope: str) -> ServiceWorkerRegistration: ...

    def add_event_listener(self, event_type: str, listener: Listener) -> None: ...

    def remove_event_listener(self, event_type: str, listener: Listener) -> None: ...


class BrowserPlatform(Protocol):
    """Everything pypwa reads from, or asks of, the browser.

    Optional capabilities (``connection``, ``service_worker``, either
    storage area) are ``None`` when the browser lacks them.
    """

    window: EventTarget
    on_line: bool
    user_agent: str
    location: str
    navigator_standalone: bool | None
    has_push_manager: bool
    connection: NetworkInformation | None
    service_worker: ServiceWorkerContainer | None
    local_storage: StorageArea | None
    session_storage: StorageArea | None

    def match_media(self, query: str) -> bool: ...

    def reload(self) -> None: ...


def media_matches(platform: BrowserPlatform, query: str) -> bool:
    """``matchMedia(query).matches``, false when the query cannot be evaluated."""
    try:
        return bool(platform.match_media(query))
    except Exception:
        _logger.debug("matchMedia(%s) failed", query, exc_info=True)
        return False


def is_standalone(platform: BrowserPlatform) -> bool:
    """True when running as an installed app.

    iOS Safari lacks the display-mode signal and exposes
    ``navigator.standalone`` instead.
    """
    if any(media_matches(platform, query) for query in (STANDALONE_QUERY, FULLSCREEN_QUERY, MINIMAL_UI_QUERY)):
        return True
    return platform.navigator_standalone is True


def is_ios_device(platform: BrowserPlatform) -> bool:
    user_agent = platform.user_agent or ""
    return any(token in user_agent for token in ("iPad", "iPhone", "iPod"))


def supports_install(platform: BrowserPlatform) -> bool:
    """Capability check used by the no-event install fallback."""
    return platform.service_worker is not None and bool(platform.has_push_manager)
