"""Lifecycle configuration for pypwa."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pypwa.exceptions import PwaConfigError

_DISABLED_VALUES = frozenset({"", "none", "off", "disabled"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_seconds(name: str, value: str) -> float:
    try:
        seconds = float(value)
    except ValueError as exc:
        raise PwaConfigError(f"{name} must be a number of seconds, got {value!r}") from exc
    if seconds < 0:
        raise PwaConfigError(f"{name} must not be negative, got {value!r}")
    return seconds


@dataclasses.dataclass(frozen=True)
class LifecycleConfig:
    """Lifecycle coordinator configuration.

    Parameters
    ----------
    install_grace_period : float or None
        Seconds to wait for an install-offer event before reporting the app
        as installable anyway on platforms that pass the install capability
        check. ``install()`` in that branch returns ``UNAVAILABLE`` and UI
        falls back to manual instructions. ``None`` disables the fallback.
    modal_delay : float
        Seconds the primary install modal waits after installability is
        confirmed before it appears.
    floating_button_delay : float
        Seconds the floating install button waits before it appears.
    permanent_dismiss_key : str
        Durable storage key for the permanent install-prompt dismissal.
    session_dismiss_key : str
        Session storage key for the floating button dismissal.
    register_service_worker : bool
        Register the background-update worker on start.
    service_worker_url : str
        Script URL passed to the worker registration.
    service_worker_scope : str
        Scope passed to the worker registration.
    skip_waiting_message : str
        ``type`` of the message posted to a waiting worker to make it
        take control.
    slow_connection_types : frozenset of str
        Effective connection types treated as slow.
    manifest_url : str
        Web app manifest location, used by diagnostics.
    reload_on_update : bool
        Reload the page once a requested update takes control.
    """

    install_grace_period: float | None = 2.0
    modal_delay: float = 2.0
    floating_button_delay: float = 10.0
    permanent_dismiss_key: str = "pwa-install-dismissed"
    session_dismiss_key: str = "pwa-floating-dismissed"
    register_service_worker: bool = True
    service_worker_url: str = "/sw.js"
    service_worker_scope: str = "/"
    skip_waiting_message: str = "SKIP_WAITING"
    slow_connection_types: frozenset[str] = frozenset({"slow-2g", "2g"})
    manifest_url: str = "/manifest.webmanifest"
    reload_on_update: bool = True

    @classmethod
    def from_env(cls, **overrides: Any) -> LifecycleConfig:
        """Create configuration from environment variables.

        Reads optional ``PYPWA_*`` variables. Explicit keyword arguments
        override environment values.

        Raises
        ------
        PwaConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "PYPWA_PERMANENT_DISMISS_KEY": "permanent_dismiss_key",
            "PYPWA_SESSION_DISMISS_KEY": "session_dismiss_key",
            "PYPWA_SERVICE_WORKER_URL": "service_worker_url",
            "PYPWA_SERVICE_WORKER_SCOPE": "service_worker_scope",
            "PYPWA_SKIP_WAITING_MESSAGE": "skip_waiting_message",
            "PYPWA_MANIFEST_URL": "manifest_url",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val

        grace_env = env.get("PYPWA_INSTALL_GRACE_PERIOD")
        if grace_env is not None and "install_grace_period" not in overrides:
            if grace_env.strip().lower() in _DISABLED_VALUES:
                config_kwargs["install_grace_period"] = None
            else:
                config_kwargs["install_grace_period"] = _env_seconds("PYPWA_INSTALL_GRACE_PERIOD", grace_env)

        for env_key, field_name in (
            ("PYPWA_MODAL_DELAY", "modal_delay"),
            ("PYPWA_FLOATING_BUTTON_DELAY", "floating_button_delay"),
        ):
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_seconds(env_key, val)

        slow_env = env.get("PYPWA_SLOW_CONNECTION_TYPES")
        if slow_env is not None and "slow_connection_types" not in overrides:
            config_kwargs["slow_connection_types"] = frozenset(
                part.strip().lower() for part in slow_env.split(",") if part.strip()
            )

        if "register_service_worker" not in overrides:
            config_kwargs["register_service_worker"] = _env_bool(env.get("PYPWA_REGISTER_SERVICE_WORKER"), True)
        if "reload_on_update" not in overrides:
            config_kwargs["reload_on_update"] = _env_bool(env.get("PYPWA_RELOAD_ON_UPDATE"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
