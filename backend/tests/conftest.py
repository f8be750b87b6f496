from __future__ import annotations
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from feedbackdesk.db import Base, get_session
import feedbackdesk.models.user
import feedbackdesk.models.service
import feedbackdesk.models.submission
from feedbackdesk.models.user import User
from feedbackdesk.main import app
from feedbackdesk.schemas.auth import UserRead
from feedbackdesk.seed import DEFAULT_SERVICES, seed_services
from feedbackdesk.services.lifecycle import SubmissionLifecycle
from feedbackdesk.services.repository import InMemorySubmissionRepository
from feedbackdesk.services.sql_repository import SqlSubmissionRepository

STANDARD = 1   # 1500 cents / 500 words
EXPRESS = 2    # 3000 cents / 500 words


def ticking_clock(start: datetime | None = None, step: timedelta = timedelta(minutes=1)):
    """Clock that moves forward on every call, so milestones are strictly ordered."""
    state = {"t": start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)}

    def now() -> datetime:
        state["t"] = state["t"] + step
        return state["t"]
    return now


@pytest.fixture
def repo() -> InMemorySubmissionRepository:
    return InMemorySubmissionRepository(
        services=DEFAULT_SERVICES,
        users=[UserRead(id=1, username="ada"), UserRead(id=2, username="grace")],
    )


@pytest.fixture
def lifecycle(repo) -> SubmissionLifecycle:
    return SubmissionLifecycle(repo, now=ticking_clock())


# ---------- SQL / HTTP ----------

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'feedbackdesk.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with factory() as session:
        await seed_services(SqlSubmissionRepository(session))
    return factory


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_staff(session_factory):
    async def _make_staff(username: str) -> None:
        async with session_factory() as session:
            await session.execute(update(User).where(User.username == username).values(is_staff=True))
            await session.commit()
    return _make_staff
