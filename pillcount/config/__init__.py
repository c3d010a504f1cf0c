"""Centralised configuration helper.

This module eliminates scattered ``os.getenv`` calls by exposing a **single**
:class:`Settings` container (retrieved via :func:`get_settings`).  Values are
re-read on every call so tests that tweak environment variables at runtime
see the change without reloading modules.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# ``_REPO_ROOT`` points to the top-level repository directory.  We use
# ``parents[2]`` because this file is located at ``pillcount/config/__init__.py``.

_REPO_ROOT = Path(__file__).resolve().parents[2]

# Domain bounds enforced at the request boundary.
DEFAULT_MAX_TOTAL = 47
DEFAULT_SYNC_THRESHOLD = 43


def _truthy(value: str | None) -> bool:  # noqa: D401 – small helper
    """Return *True* when *value* looks like an affirmative string."""

    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"CRITICAL: {name} must be an integer, got {raw!r}") from exc


@dataclass
class Settings:  # noqa: D401 – simple data container
    """Lightweight settings container populated from environment variables."""

    # Runtime flags -----------------------------------------------------
    testing: bool

    # Database ---------------------------------------------------------
    database_url: str

    # Logging ----------------------------------------------------------
    log_level: str
    log_json: bool

    # Misc
    environment: Any
    allowed_cors_origins: str
    # Public URL used to build task poll links -------------------------
    app_public_url: str | None

    # Dispatch thresholds ----------------------------------------------
    max_total: int
    sync_threshold: int

    # Deferred worker --------------------------------------------------
    task_complete_max_attempts: int
    task_recovery_enabled: bool
    task_stale_after_seconds: int

    @property
    def resolved_database_url(self) -> str:
        """Return the configured URL or the mode-dependent SQLite fallback."""
        if self.database_url:
            return self.database_url
        return "sqlite:///:memory:" if self.testing else "sqlite:///./app.db"

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.allowed_cors_origins.split(",") if o.strip()]
        return origins or ["*"]

    # Helper for tests to override values at runtime -------------------
    def override(self, **kwargs: Any) -> None:  # pragma: no cover – test util
        for key, value in kwargs.items():
            if not hasattr(self, key):  # pragma: no cover – safety
                raise AttributeError(f"Settings has no attribute '{key}'")
            setattr(self, key, value)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def _load_settings() -> Settings:  # noqa: D401 – helper
    """Populate :class:`Settings` from environment variables."""

    # Load environment file based on NODE_ENV
    node_env = os.getenv("NODE_ENV", "development")

    if node_env == "test":
        env_path = _REPO_ROOT / ".env.test"
        if not env_path.exists():
            env_path = _REPO_ROOT / ".env"  # Fallback to main .env
    else:
        env_path = _REPO_ROOT / ".env"

    if env_path.exists():
        # Explicit process environment wins over the file
        load_dotenv(env_path, override=False)

    testing = _truthy(os.getenv("TESTING"))

    return Settings(
        testing=testing,
        database_url=os.getenv("DATABASE_URL", ""),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_truthy(os.getenv("LOG_JSON")),
        environment=os.getenv("ENVIRONMENT"),
        allowed_cors_origins=os.getenv("ALLOWED_CORS_ORIGINS", ""),
        app_public_url=os.getenv("APP_PUBLIC_URL"),
        max_total=_int_env("PERMUTATIONS_MAX_TOTAL", DEFAULT_MAX_TOTAL),
        sync_threshold=_int_env("PERMUTATIONS_SYNC_THRESHOLD", DEFAULT_SYNC_THRESHOLD),
        task_complete_max_attempts=_int_env("TASK_COMPLETE_MAX_ATTEMPTS", 5),
        task_recovery_enabled=_truthy(os.getenv("TASK_RECOVERY_ENABLED", "true")),
        task_stale_after_seconds=_int_env("TASK_STALE_AFTER_SECONDS", 300),
    )


# ------------------------------------------------------------------
# Runtime validation – fail fast on inconsistent thresholds.
# ------------------------------------------------------------------


def _validate_required(settings: Settings) -> None:  # noqa: D401 – helper
    """Abort startup when the dispatch configuration cannot work."""

    problems = []

    if settings.max_total < 1:
        problems.append(f"PERMUTATIONS_MAX_TOTAL must be >= 1 (got {settings.max_total})")

    if not 1 <= settings.sync_threshold <= settings.max_total:
        problems.append(
            f"PERMUTATIONS_SYNC_THRESHOLD must be within [1, {settings.max_total}] (got {settings.sync_threshold})"
        )

    if settings.task_complete_max_attempts < 1:
        problems.append("TASK_COMPLETE_MAX_ATTEMPTS must be >= 1")

    if settings.task_stale_after_seconds < 0:
        problems.append("TASK_STALE_AFTER_SECONDS must be >= 0")

    if problems:
        raise RuntimeError("CRITICAL: Invalid configuration: " + "; ".join(problems))


def get_settings() -> Settings:  # noqa: D401 – public accessor
    """Return :class:`Settings` instance loaded from environment."""

    settings = _load_settings()
    _validate_required(settings)
    return settings


__all__ = [
    "DEFAULT_MAX_TOTAL",
    "DEFAULT_SYNC_THRESHOLD",
    "Settings",
    "get_settings",
]
