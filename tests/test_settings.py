from pathlib import Path

import pytest

from backend.core import settings as settings_module


@pytest.fixture
def fresh_settings(monkeypatch):
    for name in (
        "GITHUB_USERNAME",
        "GITHUB_CACHE_TTL_MINUTES",
        "GITHUB_COMMIT_HISTORY_DAYS",
        "GITHUB_CACHE_REFRESH_SECONDS",
        "GITHUB_CACHE_REFRESH_MS",
        "GITHUB_API_BASE",
        "METRICS_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)
    settings_module.get_settings.cache_clear()
    yield monkeypatch
    settings_module.get_settings.cache_clear()


def test_defaults(fresh_settings):
    settings = settings_module.get_settings()

    assert settings.environment == "test"
    assert settings.identity == "nyxnix"
    assert settings.cache_ttl_minutes == 30
    assert settings.commit_history_days == 180
    assert settings.refresh_interval_seconds == 900
    assert settings.github_api_base == "https://api.github.com"
    assert settings.redis_url == ""
    assert settings.metrics_enabled is True


def test_invalid_numbers_fall_back_to_defaults(fresh_settings):
    fresh_settings.setenv("GITHUB_CACHE_TTL_MINUTES", "soon")
    fresh_settings.setenv("GITHUB_COMMIT_HISTORY_DAYS", "0")

    settings = settings_module.get_settings()

    assert settings.cache_ttl_minutes == 30
    assert settings.commit_history_days == 180


def test_legacy_refresh_interval_in_milliseconds(fresh_settings):
    fresh_settings.setenv("GITHUB_CACHE_REFRESH_MS", "120000")

    assert settings_module.get_settings().refresh_interval_seconds == 120


def test_refresh_seconds_win_over_legacy_milliseconds(fresh_settings):
    fresh_settings.setenv("GITHUB_CACHE_REFRESH_MS", "120000")
    fresh_settings.setenv("GITHUB_CACHE_REFRESH_SECONDS", "45")

    assert settings_module.get_settings().refresh_interval_seconds == 45


def test_github_token_aliases(fresh_settings):
    fresh_settings.setenv("GH_API_TOKEN", "")
    fresh_settings.setenv("GITHUB_TOKEN", "from-alias")

    assert settings_module.get_settings().github_token == "from-alias"


def test_relative_paths_resolve_against_working_directory(fresh_settings, tmp_path):
    fresh_settings.chdir(tmp_path)
    fresh_settings.setenv("FALLBACK_SNAPSHOT_PATH", "data/repos")

    settings = settings_module.get_settings()

    assert settings.fallback_snapshot_path == Path(tmp_path) / "data" / "repos"


def test_production_disables_metrics_by_default(fresh_settings):
    fresh_settings.setenv("ENVIRONMENT", "production")

    settings = settings_module.get_settings()

    assert settings.environment == "production"
    assert settings.metrics_enabled is False
