import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="treasure-hunt-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP}/default.db"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["BONUS_MILESTONE"] = "15"
os.environ["ENFORCE_BONUS_MILESTONES"] = "true"
os.environ["RESULTS_CACHE_TTL"] = "0"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ADMIN_REGISTRATION_KEY"] = "test-admin-key"

import httpx
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.storage import LocalImageStore, get_image_store
from app.db.base_class import Base
from app.db.session import get_db
from app.main import app as fastapi_app
from app.models.question import Question
from app.services import identity

ADMIN_KEY = os.environ["ADMIN_REGISTRATION_KEY"]
TEST_MAX_IMAGE_BYTES = 64 * 1024
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def make_engine(path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{path}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        # SQLite leaves foreign keys off unless asked, MySQL always enforces them
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


@pytest.fixture
async def engine(tmp_path):
    engine = make_engine(tmp_path / "hunt.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(tmp_path):
    return LocalImageStore(str(tmp_path / "uploads"), "/uploads", TEST_MAX_IMAGE_BYTES)


@pytest.fixture
def app(session_factory, store):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_image_store] = lambda: store
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def register_and_login(client, username, password="pw", role="participant", device="d1"):
    """Register (ignoring duplicates) and log in; returns auth headers."""
    payload = {"username": username, "password": password, "role": role}
    if role == "admin":
        payload["adminKey"] = ADMIN_KEY
    await client.post("/api/users/register", json=payload)
    resp = await client.post(
        "/api/users/login",
        json={"username": username, "password": password, "deviceId": device},
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
async def admin_headers(client):
    return await register_and_login(client, "gamemaster", role="admin", device="admin-laptop")


@pytest.fixture
async def team_headers(client):
    return await register_and_login(client, "teamA")


async def add_question(db, text="Riddle", points=10, is_bonus=False, requires_image=False, position=None):
    """Insert a question directly, bypassing the admin API."""
    if position is None:
        position = 0
    question = Question(
        text=text,
        points=points,
        is_bonus=is_bonus,
        requires_image=requires_image,
        position=position,
    )
    db.add(question)
    await db.commit()
    await db.refresh(question)
    return question


async def add_track(db, count, is_bonus=False, points=10):
    return [
        await add_question(db, text=f"{'Bonus' if is_bonus else 'Normal'} {i}", points=points,
                           is_bonus=is_bonus, position=i)
        for i in range(1, count + 1)
    ]


@pytest.fixture
async def participant(db):
    return await identity.register(db, "solo", "pw", "participant")


@pytest.fixture
async def admin_user(db):
    return await identity.register(db, "root", "pw", "admin")
