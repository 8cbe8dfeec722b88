"""Install-readiness diagnostics for developers and testers."""

from __future__ import annotations

import logging
from urllib.parse import urljoin, urlsplit

import aiohttp

from pypwa.config import LifecycleConfig
from pypwa.coordinator import LifecycleCoordinator
from pypwa.models._base import PwaBaseModel
from pypwa.models.snapshot import DisplayMode
from pypwa.platform import BrowserPlatform, is_ios_device, is_standalone, media_matches, supports_install
from pypwa.state.policy import resolve_display_mode

_logger = logging.getLogger(__name__)

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


class DiagnosticsReport(PwaBaseModel):
    is_secure_context: bool
    has_service_worker: bool
    is_standalone: bool
    display_mode: DisplayMode
    is_ios: bool
    can_install: bool
    install_offer_seen: bool = False
    user_agent: str = ""
    manifest_ok: bool | None = None


def is_secure_context(location: str) -> bool:
    """Install and background workers need HTTPS, except on localhost."""
    parts = urlsplit(location)
    return parts.scheme == "https" or (parts.hostname or "") in _LOCAL_HOSTS


def collect_diagnostics(
    platform: BrowserPlatform,
    coordinator: LifecycleCoordinator | None = None,
) -> DiagnosticsReport:
    offer_seen = coordinator is not None and coordinator.install_tracker.offer_count > 0
    return DiagnosticsReport(
        is_secure_context=is_secure_context(platform.location),
        has_service_worker=platform.service_worker is not None,
        is_standalone=is_standalone(platform),
        display_mode=resolve_display_mode(lambda query: media_matches(platform, query)),
        is_ios=is_ios_device(platform),
        can_install=supports_install(platform),
        install_offer_seen=offer_seen,
        user_agent=platform.user_agent,
    )


async def probe_url(session: aiohttp.ClientSession, url: str, *, timeout: float = 10.0) -> int | None:
    """Return the HTTP status for *url*, or ``None`` if it could not be fetched."""
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            return response.status
    except (aiohttp.ClientError, TimeoutError):
        _logger.debug("Fetching %s failed", url, exc_info=True)
        return None


async def probe_manifest(session: aiohttp.ClientSession, url: str, *, timeout: float = 10.0) -> bool:
    """True when *url* serves a JSON manifest with a name."""
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            if response.status != 200:
                _logger.debug("Manifest %s returned HTTP %d", url, response.status)
                return False
            manifest = await response.json(content_type=None)
    except (aiohttp.ClientError, TimeoutError, ValueError):
        _logger.debug("Fetching manifest %s failed", url, exc_info=True)
        return False
    if not isinstance(manifest, dict):
        return False
    return bool(manifest.get("name") or manifest.get("short_name"))


async def collect_diagnostics_with_manifest(
    platform: BrowserPlatform,
    session: aiohttp.ClientSession,
    coordinator: LifecycleCoordinator | None = None,
) -> DiagnosticsReport:
    config = coordinator.config if coordinator is not None else LifecycleConfig()
    report = collect_diagnostics(platform, coordinator)
    manifest_ok = await probe_manifest(session, urljoin(platform.location, config.manifest_url))
    return report.model_copy(update={"manifest_ok": manifest_ok})


def log_pwa_info(report: DiagnosticsReport) -> None:
    _logger.info("PWA info: %s", report.model_dump(mode="json"))


def reset_install_state(coordinator: LifecycleCoordinator) -> None:
    """Forget both install-prompt dismissals so prompts show again."""
    coordinator.reset_dismissals()
