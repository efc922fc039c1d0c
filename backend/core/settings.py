from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from backend.core.env import load_env


PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_USER_DATA_DIR = Path.home() / ".github_dashboard" / "data"

DEFAULT_IDENTITY = "nyxnix"
DEFAULT_GITHUB_API_BASE = "https://api.github.com"
DEFAULT_COMMIT_HISTORY_DAYS = 180
DEFAULT_CACHE_TTL_MINUTES = 30
DEFAULT_REFRESH_INTERVAL_SECONDS = 900
DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class Settings:
    environment: str  # development, staging, production, test
    data_dir: Path
    identity: str
    github_token: str
    github_api_base: str
    commit_history_days: int
    cache_ttl_minutes: int
    refresh_interval_seconds: int
    refresh_token: str
    redis_url: str
    fallback_snapshot_path: Path
    upstream_timeout_seconds: float
    static_dir: Path
    metrics_enabled: bool
    log_level: str
    log_json: bool
    log_file: str
    host: str
    port: int


def _get_int(name: str, default: int, *, minimum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except (TypeError, ValueError):
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _get_float(name: str, default: float, *, minimum: Optional[float] = None) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw.strip())
    except (TypeError, ValueError):
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_path(name: str, default: Path) -> Path:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


load_env()


def _default_data_dir() -> Path:
    env_dir = os.getenv("DATA_DIR")
    if env_dir and env_dir.strip():
        return Path(env_dir).expanduser()
    return DEFAULT_USER_DATA_DIR


def _refresh_interval_seconds() -> int:
    # GITHUB_CACHE_REFRESH_MS is the legacy knob; seconds win when both are set.
    if os.getenv("GITHUB_CACHE_REFRESH_SECONDS") is not None:
        return _get_int(
            "GITHUB_CACHE_REFRESH_SECONDS",
            DEFAULT_REFRESH_INTERVAL_SECONDS,
            minimum=1,
        )
    legacy_ms = _get_int("GITHUB_CACHE_REFRESH_MS", 0, minimum=1)
    if legacy_ms:
        return max(1, legacy_ms // 1000)
    return DEFAULT_REFRESH_INTERVAL_SECONDS


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    environment = os.getenv("ENVIRONMENT", "development").strip().lower()
    if environment not in {"development", "production", "staging", "test"}:
        environment = "development"

    data_dir = _default_data_dir()

    identity = os.getenv("GITHUB_USERNAME", "").strip() or DEFAULT_IDENTITY
    github_token = (
        os.getenv("GH_API_TOKEN", "").strip()
        or os.getenv("GITHUB_TOKEN", "").strip()
    )
    github_api_base = (
        os.getenv("GITHUB_API_BASE", "").strip() or DEFAULT_GITHUB_API_BASE
    ).rstrip("/")

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    log_file = os.getenv("LOG_FILE", "").strip()
    if not log_file:
        log_file = str(data_dir / "logs" / "app.log")

    metrics_raw = os.getenv("METRICS_ENABLED")
    if metrics_raw is None:
        metrics_enabled = environment != "production"
    else:
        metrics_enabled = _get_bool("METRICS_ENABLED")

    return Settings(
        environment=environment,
        data_dir=data_dir,
        identity=identity,
        github_token=github_token,
        github_api_base=github_api_base,
        commit_history_days=_get_int(
            "GITHUB_COMMIT_HISTORY_DAYS", DEFAULT_COMMIT_HISTORY_DAYS, minimum=1
        ),
        cache_ttl_minutes=_get_int(
            "GITHUB_CACHE_TTL_MINUTES", DEFAULT_CACHE_TTL_MINUTES, minimum=1
        ),
        refresh_interval_seconds=_refresh_interval_seconds(),
        refresh_token=os.getenv("CACHE_REFRESH_TOKEN", ""),
        redis_url=os.getenv("REDIS_URL", "").strip(),
        fallback_snapshot_path=_get_path("FALLBACK_SNAPSHOT_PATH", Path.cwd() / "repos"),
        upstream_timeout_seconds=_get_float(
            "UPSTREAM_TIMEOUT_SECONDS", DEFAULT_UPSTREAM_TIMEOUT_SECONDS, minimum=0.1
        ),
        static_dir=_get_path("STATIC_DIR", Path.cwd() / "docs"),
        metrics_enabled=metrics_enabled,
        log_level=log_level,
        log_json=_get_bool("LOG_JSON", default=False),
        log_file=log_file,
        host=os.getenv("HOST", "0.0.0.0").strip() or "0.0.0.0",
        port=_get_int("PORT", 3000, minimum=1),
    )
