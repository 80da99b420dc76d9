"""Runtime configuration helpers for the Calmly tiers."""
from __future__ import annotations

import logging
import os
from typing import Optional

DEFAULT_BACKEND_URL = "http://localhost:3001"
DEFAULT_UPSTREAM_TIMEOUT = 30.0
DEFAULT_ASSISTANT_TIMEOUT = 60.0
DEFAULT_NOTIFIER_TIMEOUT = 10.0
DEFAULT_NOTIFIER_ATTEMPTS = 3
DEFAULT_NOTIFIER_BACKOFF = 0.5


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _get_float(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")


def _get_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def get_env() -> str:
    return (_get_env("ENV") or _get_env("APP_ENV") or "dev").lower()


def get_backend_api_url() -> str:
    """Backend base address used by the proxy tier."""
    url = _get_env("BACKEND_API_URL") or _get_env("API_URL") or DEFAULT_BACKEND_URL
    return url.rstrip("/")


def get_upstream_timeout() -> float:
    return _get_float("UPSTREAM_TIMEOUT_SECONDS", DEFAULT_UPSTREAM_TIMEOUT)


def get_jwt_secret() -> Optional[str]:
    return _get_env("AUTH_JWT_SIGNING")


def get_assistant_engine_url() -> Optional[str]:
    url = _get_env("ASSISTANT_ENGINE_URL")
    return url.rstrip("/") if url else None


def get_assistant_timeout() -> float:
    return _get_float("ASSISTANT_TIMEOUT_SECONDS", DEFAULT_ASSISTANT_TIMEOUT)


def get_notifier_url() -> Optional[str]:
    url = _get_env("NOTIFIER_URL")
    return url.rstrip("/") if url else None


def get_notifier_event_key() -> Optional[str]:
    return _get_env("NOTIFIER_EVENT_KEY")


def get_notifier_timeout() -> float:
    return _get_float("NOTIFIER_TIMEOUT_SECONDS", DEFAULT_NOTIFIER_TIMEOUT)


def get_notifier_max_attempts() -> int:
    return max(1, _get_int("NOTIFIER_MAX_ATTEMPTS", DEFAULT_NOTIFIER_ATTEMPTS))


def get_notifier_backoff() -> float:
    return max(0.0, _get_float("NOTIFIER_BACKOFF_SECONDS", DEFAULT_NOTIFIER_BACKOFF))


def get_frontend_url() -> str:
    return _get_env("FRONTEND_URL") or "http://localhost:3000"


def get_log_level() -> str:
    return (_get_env("LOG_LEVEL") or "INFO").upper()


def configure_logging() -> None:
    logging.basicConfig(
        level=get_log_level(),
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )


def config_snapshot() -> dict:
    """Non-secret view of the active configuration, logged at startup."""
    return {
        "env": get_env(),
        "backend_api_url": get_backend_api_url(),
        "upstream_timeout": get_upstream_timeout(),
        "assistant_engine": "http" if get_assistant_engine_url() else "local",
        "notifier": "http" if get_notifier_url() else "log",
        "notifier_max_attempts": get_notifier_max_attempts(),
    }
