import asyncio
import os
from typing import Dict, List, Optional, Set

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "true")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.client.identity import StaticIdentityProvider, UserIdentity
from app.client.store import InMemoryNoteStore
from app.core.database import Base, get_db
from app.core.exceptions import StoreError
from app.core.redis_client import get_redis
from main import app

AUTOSAVE_DELAY = 0.01


class FakeRedis:
    """Dict-backed stand-in for the handful of Redis calls the API makes"""

    def __init__(self):
        self.data: Dict[str, str] = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, seconds, value):
        self.data[key] = value
        return True

    async def delete(self, *keys):
        return sum(1 for key in keys if self.data.pop(key, None) is not None)


class RecordingStore(InMemoryNoteStore):
    """In-memory store that records writes and can be told to fail or block"""

    def __init__(self, identity):
        super().__init__(identity)
        self.updates: List[tuple] = []
        self.failing: Set[str] = set()
        self.gate: Optional[asyncio.Event] = None

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failing:
            raise StoreError(f"{operation} failed", status_code=503)

    async def list(self, owner_id):
        self._maybe_fail("list")
        return await super().list(owner_id)

    async def create(self, owner_id, fields):
        self._maybe_fail("create")
        return await super().create(owner_id, fields)

    async def update(self, note_id, fields):
        self.updates.append((note_id, dict(fields)))
        if self.gate is not None:
            await self.gate.wait()
        self._maybe_fail("update")
        return await super().update(note_id, fields)

    async def delete(self, note_id):
        self._maybe_fail("delete")
        return await super().delete(note_id)


class RecordingNotifier:
    def __init__(self):
        self.notifications = []

    def notify(self, notification):
        self.notifications.append(notification)

    @property
    def titles(self):
        return [n.title for n in self.notifications]


async def settle(session) -> None:
    """Let the debounce window pass and any autosave write finish"""
    await asyncio.sleep(AUTOSAVE_DELAY * 5)
    await session.wait_for_autosave()


@pytest.fixture
def user():
    return UserIdentity(id=1, username="alice", access_token="token")


@pytest.fixture
def identity(user):
    return StaticIdentityProvider(user)


@pytest.fixture
def store(identity):
    return RecordingStore(identity)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def db():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
async def client(db, fake_redis):
    """API client wired to the test database and fake Redis"""

    async def _override_get_db():
        yield db

    async def _override_get_redis():
        return fake_redis

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_redis] = _override_get_redis
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def register_and_login(client: AsyncClient, username: str, password: str = "secret123") -> Dict[str, str]:
    response = await client.post("/api/v1/auth/register", json={"username": username, "password": password})
    assert response.status_code == 201
    response = await client.post("/api/v1/auth/login", data={"username": username, "password": password})
    assert response.status_code == 200
    return response.json()


def bearer(tokens: Dict[str, str]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
async def alice_headers(client):
    return bearer(await register_and_login(client, "alice"))


@pytest.fixture
async def bob_headers(client):
    return bearer(await register_and_login(client, "bobby"))
