"""Shared test fixtures for media-gc tests."""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from media_gc.api.jobs import get_job_config, get_session_factory
from media_gc.config.settings import CleanupConfig
from media_gc.main import app
from media_gc.models.database import Base, get_async_session
from media_gc.services.store import SqlAlchemyDocumentStore


@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session) -> SqlAlchemyDocumentStore:
    return SqlAlchemyDocumentStore(session)


class MediaFactory:
    """Creates media and content documents through the store."""

    def __init__(self, store: SqlAlchemyDocumentStore):
        self.store = store

    @staticmethod
    def hours_ago(hours: float) -> datetime:
        return datetime.now(timezone.utc) - timedelta(hours=hours)

    async def create_file(self, hours_ago: float | None = None, **data: Any) -> dict:
        data.setdefault("filename", "intro.mp3")
        data.setdefault("mime_type", "audio/mpeg")
        if hours_ago is not None:
            data["created_at"] = self.hours_ago(hours_ago)
        return await self.store.create("files", data)

    async def create_image(self, hours_ago: float | None = None, **data: Any) -> dict:
        data.setdefault("filename", "sunrise.webp")
        data.setdefault("mime_type", "image/webp")
        data.setdefault("alt", "Sunrise over the lake")
        if hours_ago is not None:
            data["created_at"] = self.hours_ago(hours_ago)
        return await self.store.create("images", data)

    async def create_tag(self, title: str = "Keep") -> dict:
        return await self.store.create("media_tags", {"title": title})

    async def trash(self, collection: str, doc_id: int) -> dict:
        return await self.store.update(
            collection, doc_id, {"deleted_at": datetime.now(timezone.utc)}
        )

    async def backdate(self, collection: str, doc_id: int, hours: float = 48) -> dict:
        return await self.store.update(collection, doc_id, {"created_at": self.hours_ago(hours)})

    async def is_live(self, collection: str, doc_id: int) -> bool:
        result = await self.store.find(collection, {"id": {"equals": doc_id}}, limit=1)
        return result.total_docs > 0

    async def in_trash(self, collection: str, doc_id: int) -> bool:
        result = await self.store.find(
            collection,
            {"and": [{"id": {"equals": doc_id}}, {"deleted_at": {"exists": True}}]},
            limit=1,
            trash=True,
        )
        return result.total_docs > 0

    async def is_gone(self, collection: str, doc_id: int) -> bool:
        result = await self.store.find(collection, {"id": {"equals": doc_id}}, limit=1, trash=True)
        return result.total_docs == 0


@pytest.fixture
def media(store) -> MediaFactory:
    return MediaFactory(store)


@pytest.fixture
def log_records():
    records: list[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


@pytest.fixture
async def async_client(engine, session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_job_config] = lambda: CleanupConfig()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
