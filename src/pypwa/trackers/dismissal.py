"""Permanent and session-scoped install-prompt dismissal flags."""

from __future__ import annotations

import logging
from collections.abc import Callable

from pypwa.config import LifecycleConfig
from pypwa.exceptions import PersistenceError
from pypwa.models.dismissal import DismissalRecord
from pypwa.platform import BrowserPlatform, StorageArea
from pypwa.state.events import EventKind, EventSource, LifecycleEvent

_logger = logging.getLogger(__name__)

_FLAG_VALUE = "true"

PERMANENT = "permanent"
SESSION = "session"


class DismissalStore:
    """Reads and writes the two dismissal scopes.

    ``permanent`` lives in durable storage, ``session`` in session
    storage (the browser clears it when the session ends). A flag is set
    when its key is present.

    Storage that is missing or raises counts as "not dismissed". A write
    that fails is still honored for the rest of this page, so the user is
    not re-prompted until the next load.
    """

    def __init__(
        self,
        platform: BrowserPlatform,
        config: LifecycleConfig,
        *,
        on_change: Callable[[LifecycleEvent], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._platform = platform
        self._config = config
        self._on_change = on_change
        self._logger = logger or _logger
        # Scope -> value for writes that did not reach storage.
        self._unpersisted: dict[str, bool] = {}

    def _area(self, scope: str) -> tuple[StorageArea, str]:
        if scope == PERMANENT:
            area, key = self._platform.local_storage, self._config.permanent_dismiss_key
        else:
            area, key = self._platform.session_storage, self._config.session_dismiss_key
        if area is None:
            raise PersistenceError(f"{scope} storage unavailable", key=key, scope=scope)
        return area, key

    def _read(self, scope: str) -> bool:
        area, key = self._area(scope)
        try:
            return area.get_item(key) is not None
        except Exception as exc:
            raise PersistenceError(f"reading {key!r} failed: {exc}", key=key, scope=scope) from exc

    def _write(self, scope: str, value: bool) -> None:
        area, key = self._area(scope)
        try:
            if value:
                area.set_item(key, _FLAG_VALUE)
            else:
                area.remove_item(key)
        except Exception as exc:
            raise PersistenceError(f"writing {key!r} failed: {exc}", key=key, scope=scope) from exc

    def _get(self, scope: str) -> bool:
        if scope in self._unpersisted:
            return self._unpersisted[scope]
        try:
            return self._read(scope)
        except PersistenceError:
            self._logger.debug("Dismissal read failed; treating %s flag as unset", scope, exc_info=True)
            return False

    def _set(self, scope: str, value: bool) -> None:
        try:
            self._write(scope, value)
        except PersistenceError:
            self._logger.debug("Dismissal write failed; keeping %s=%s for this page only", scope, value, exc_info=True)
            self._unpersisted[scope] = value
        else:
            self._unpersisted.pop(scope, None)

    def _notify(self) -> None:
        if self._on_change is None:
            return
        self._on_change(
            LifecycleEvent(
                source=EventSource.DISMISSAL,
                kind=EventKind.DISMISSAL_CHANGED,
                data=self.record().model_dump(),
            )
        )

    def dismiss_permanently(self) -> None:
        self._set(PERMANENT, True)
        self._notify()

    def dismiss_for_session(self) -> None:
        self._set(SESSION, True)
        self._notify()

    def is_permanently_dismissed(self) -> bool:
        return self._get(PERMANENT)

    def is_session_dismissed(self) -> bool:
        return self._get(SESSION)

    def record(self) -> DismissalRecord:
        return DismissalRecord(
            permanent=self.is_permanently_dismissed(),
            session=self.is_session_dismissed(),
        )

    def reset(self) -> None:
        """Clear both flags so prompts can be re-triggered (diagnostics/testing)."""
        self._set(PERMANENT, False)
        self._set(SESSION, False)
        self._logger.info("Install dismissal state reset")
        self._notify()
