import os
import tempfile

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis_aioredis

_TEST_DATA_DIR = tempfile.mkdtemp(prefix="dashboard-test-")

TEST_ENV = {
    "ENVIRONMENT": "test",
    "DATA_DIR": _TEST_DATA_DIR,
    "LOG_FILE": os.path.join(_TEST_DATA_DIR, "logs", "app.log"),
    "GITHUB_USERNAME": "octo",
    "GH_API_TOKEN": "",
    "GITHUB_TOKEN": "",
    "GITHUB_CACHE_TTL_MINUTES": "30",
    "GITHUB_COMMIT_HISTORY_DAYS": "7",
    "CACHE_REFRESH_TOKEN": "",
    "REDIS_URL": "",
    # Point at paths that do not exist so tests opt in to static files and snapshots.
    "STATIC_DIR": os.path.join(_TEST_DATA_DIR, "no-static"),
    "FALLBACK_SNAPSHOT_PATH": os.path.join(_TEST_DATA_DIR, "no-repos"),
}

for key, value in TEST_ENV.items():
    os.environ[key] = value


@pytest.fixture(scope="session", autouse=True)
def _set_test_env():
    """Force deterministic env for tests and reset cached settings."""

    for key, value in TEST_ENV.items():
        os.environ[key] = value

    from backend.core import settings as settings_module
    settings_module.get_settings.cache_clear()
    yield
    settings_module.get_settings.cache_clear()


@pytest_asyncio.fixture
async def fake_redis():
    """Provide a fake Redis client for store tests."""
    client = fakeredis_aioredis.FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()
