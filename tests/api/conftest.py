"""API-specific test fixtures."""

import pytest
from fakeredis import FakeAsyncRedis
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.resources import AppResources
from app.db.base import Database
from app.db.redis import RedisConnection


@pytest.fixture
def test_settings(sqlite_url) -> Settings:
    return Settings(
        _env_file=None,
        database_url=sqlite_url,
        redis_url="redis://fake:6379",
        storage_bucket="",
        rows_poll_seconds=0,
        success_reset_delay_seconds=0,
    )


@pytest.fixture
def make_client(fake_storage):
    """Build a TestClient for given settings.

    Resources are created inside the app lifespan, i.e. in the TestClient's
    own event loop: SQLite file database, fakeredis, and the shared
    FakeStorage so tests can inspect uploads or make them fail.
    """
    clients = []

    def _make(settings: Settings) -> TestClient:
        from app.main import create_app

        def factory(s: Settings) -> AppResources:
            return AppResources(
                settings=s,
                database=Database(s.database_url),
                redis=RedisConnection(s.redis_url, client_factory=lambda: FakeAsyncRedis(decode_responses=False)),
                storage=fake_storage,
            )

        client = TestClient(create_app(settings, resources_factory=factory))
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def api_client(make_client, test_settings) -> TestClient:
    return make_client(test_settings)
