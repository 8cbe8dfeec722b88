"""Pure derivations shared by the trackers and the coordinator.

Nothing here touches the platform; callers pass in what they observed.
"""

from __future__ import annotations

from collections.abc import Callable, Collection

from pypwa.models.snapshot import ConnectionType, DisplayMode
from pypwa.platform import FULLSCREEN_QUERY, MINIMAL_UI_QUERY, STANDALONE_QUERY


def classify_connection(effective_type: str | None) -> ConnectionType:
    if not effective_type:
        return ConnectionType.UNKNOWN
    return ConnectionType(effective_type)


def is_slow(connection_type: ConnectionType, slow_types: Collection[str]) -> bool:
    if connection_type == ConnectionType.UNKNOWN:
        return False
    return connection_type.value in slow_types


def resolve_display_mode(matches: Callable[[str], bool]) -> DisplayMode:
    """First matching display mode, checked in the order the browser prefers."""
    for query, mode in (
        (STANDALONE_QUERY, DisplayMode.STANDALONE),
        (MINIMAL_UI_QUERY, DisplayMode.MINIMAL_UI),
        (FULLSCREEN_QUERY, DisplayMode.FULLSCREEN),
    ):
        if matches(query):
            return mode
    return DisplayMode.BROWSER


def resolve_installable(*, has_handle: bool, fallback_armed: bool, installed: bool) -> bool:
    """Installed apps are never installable."""
    if installed:
        return False
    return has_handle or fallback_armed
