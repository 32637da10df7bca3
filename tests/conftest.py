"""Shared test fixtures for all test groups."""

import pytest
from fakeredis import FakeAsyncRedis

from app.core.exceptions import StorageUploadError
from app.db.base import Database
from app.services.timeline_service import TimelineService
from app.wizard.service import DraftService
from app.wizard.store import DraftStore


class FakeStorage:
    """In-memory FileStorage. File names listed in ``failing`` raise on upload."""

    def __init__(self, failing: set[str] | None = None):
        self.failing = set(failing or ())
        self.uploads: list[tuple[str, bytes, str | None]] = []
        self.connected = False

    def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.connected = False

    @property
    def is_configured(self) -> bool:
        return self.connected

    async def upload(self, file_name: str, data: bytes, content_type: str | None = None) -> str:
        self.uploads.append((file_name, data, content_type))
        if file_name in self.failing:
            raise StorageUploadError(file_name, "simulated outage")
        return f"https://files.test/{len(self.uploads)}/{file_name}"


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
async def redis():
    """Fake Redis returning bytes, like the real draft store connection."""
    client = FakeAsyncRedis(decode_responses=False)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def break_redis_transactions(redis, monkeypatch):
    """Returns a switch that makes every Redis transaction fail on execute.

    Calling the switch returns a function that restores the real pipeline.
    """
    real_pipeline = redis.pipeline

    class FailingPipeline:
        def __init__(self, *args, **kwargs):
            self.pipe = real_pipeline(*args, **kwargs)

        async def __aenter__(self):
            await self.pipe.__aenter__()
            return self

        async def __aexit__(self, *exc):
            return await self.pipe.__aexit__(*exc)

        def __getattr__(self, name):
            return getattr(self.pipe, name)

        async def execute(self):
            raise ConnectionError("redis went away")

    def switch():
        monkeypatch.setattr(redis, "pipeline", FailingPipeline)
        return monkeypatch.undo

    return switch


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'timelines.db'}"


@pytest.fixture
async def database(sqlite_url):
    """Connected Database on a throwaway SQLite file."""
    db = Database(sqlite_url)
    await db.connect()
    yield db
    await db.disconnect()


@pytest.fixture
def timeline_service(database) -> TimelineService:
    return TimelineService(database.session_factory)


@pytest.fixture
def draft_store(redis) -> DraftStore:
    return DraftStore(redis, ttl=600)


@pytest.fixture
def draft_service(draft_store, fake_storage, timeline_service) -> DraftService:
    return DraftService(
        store=draft_store,
        storage=fake_storage,
        timelines=timeline_service,
        success_delay=1.5,
    )
