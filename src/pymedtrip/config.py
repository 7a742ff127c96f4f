"""Client configuration for pymedtrip."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from pymedtrip._constants import (
    DEFAULT_ADMIN_FALLBACK_PATH,
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_ONBOARDING_PATH,
    DEFAULT_SIGN_IN_PATH,
)
from pymedtrip.exceptions import MedTripConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value)
    except ValueError as exc:
        raise MedTripConfigError(f"{env_key} must be numeric, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class MedTripConfig:
    """Client configuration.

    Parameters
    ----------
    api_url : str
        Backend base URL (the project URL, without ``/rest/v1``).
    api_key : str
        Public API key sent as the ``apikey`` header on every request.
        Also used as the bearer token while nobody is signed in.
    debounce_ms : int
        Quiet period in milliseconds before a synchronized state write is
        sent to the backend. Each new write restarts the period.
    cache_dir : Path or None
        Directory for the file-backed local cache. ``None`` keeps the
        cache in memory only.
    sign_in_path : str
        Where anonymous users are redirected.
    onboarding_path : str
        Where providers with unfinished onboarding are redirected.
    admin_fallback_path : str
        Where non-admins are redirected from admin-only pages.
    request_timeout : float
        Total timeout in seconds for a single REST request.
    flush_on_close : bool
        Send a pending debounced write immediately when a synchronized
        state is closed, instead of dropping it.
    remote_wins_during_load : bool
        When ``True`` a remote value that arrives after a local write made
        during the same load still replaces it. When ``False`` the local
        write is kept.
    api_trace_enabled : bool
        Log redacted request/response payloads at DEBUG level.
    """

    api_url: str
    api_key: str
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    cache_dir: Path | None = None
    sign_in_path: str = DEFAULT_SIGN_IN_PATH
    onboarding_path: str = DEFAULT_ONBOARDING_PATH
    admin_fallback_path: str = DEFAULT_ADMIN_FALLBACK_PATH
    request_timeout: float = 15.0
    flush_on_close: bool = False
    remote_wins_during_load: bool = True
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if not self.api_url or not self.api_url.strip():
            raise MedTripConfigError("api_url must be non-empty")
        if not self.api_key or not self.api_key.strip():
            raise MedTripConfigError("api_key must be non-empty")
        if self.debounce_ms < 0:
            raise MedTripConfigError(f"debounce_ms must be >= 0, got {self.debounce_ms}")
        if self.request_timeout <= 0:
            raise MedTripConfigError(f"request_timeout must be > 0, got {self.request_timeout}")
        object.__setattr__(self, "api_url", self.api_url.strip().rstrip("/"))
        if self.cache_dir is not None and not isinstance(self.cache_dir, Path):
            object.__setattr__(self, "cache_dir", Path(self.cache_dir))

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @classmethod
    def from_env(cls, **overrides: Any) -> MedTripConfig:
        """Create configuration from environment variables.

        Reads ``MEDTRIP_API_URL``, ``MEDTRIP_API_KEY`` and the optional
        ``MEDTRIP_*`` variables. Explicit keyword arguments override
        environment values.

        Raises
        ------
        MedTripConfigError
            A required value is missing or a numeric value does not parse.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "MEDTRIP_API_URL": "api_url",
            "MEDTRIP_API_KEY": "api_key",
            "MEDTRIP_SIGN_IN_PATH": "sign_in_path",
            "MEDTRIP_ONBOARDING_PATH": "onboarding_path",
            "MEDTRIP_ADMIN_FALLBACK_PATH": "admin_fallback_path",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        debounce_env = env.get("MEDTRIP_DEBOUNCE_MS")
        if debounce_env is not None and "debounce_ms" not in overrides:
            config_kwargs["debounce_ms"] = _env_number("MEDTRIP_DEBOUNCE_MS", debounce_env, int)

        timeout_env = env.get("MEDTRIP_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = _env_number("MEDTRIP_REQUEST_TIMEOUT", timeout_env, float)

        cache_env = env.get("MEDTRIP_CACHE_DIR")
        if cache_env and "cache_dir" not in overrides:
            config_kwargs["cache_dir"] = Path(cache_env).expanduser()

        if "flush_on_close" not in overrides:
            config_kwargs["flush_on_close"] = _env_bool(env.get("MEDTRIP_FLUSH_ON_CLOSE"), False)
        if "remote_wins_during_load" not in overrides:
            config_kwargs["remote_wins_during_load"] = _env_bool(env.get("MEDTRIP_REMOTE_WINS_DURING_LOAD"), True)
        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(env.get("MEDTRIP_API_TRACE_ENABLED"), False)

        config_kwargs.update(overrides)

        for required in ("api_url", "api_key"):
            if not config_kwargs.get(required):
                raise MedTripConfigError(f"Missing required setting {required!r} (MEDTRIP_{required.upper()})")

        return cls(**config_kwargs)
