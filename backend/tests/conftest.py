import os

# Must be set before app modules build their settings and engine.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime
from typing import Optional

import httpx
import pytest
import pytest_asyncio

from app.core.config import settings
from app.core.database import build_engine, build_sessionmaker, get_db, init_db
from app.core.rate_limit import limiter
from app.api.deps import get_coach_service, get_session_factory
from app.schemas.auth import Identity
from app.services.auth_backend import DatabaseAuthBackend
from app.services.coach_service import CoachService

PASSWORD = "secret123"


def make_identity(identity_id: str = "u1", email: Optional[str] = None) -> Identity:
    return Identity(
        id=identity_id,
        email=email or f"{identity_id}@example.com",
        email_confirmed_at=datetime.utcnow(),
        created_at=datetime.utcnow(),
    )


async def register(backend: DatabaseAuthBackend, email: str, password: str = PASSWORD, confirmed: bool = True) -> Identity:
    result = await backend.sign_up(email, password)
    identity = result.identity
    if confirmed:
        identity = await backend.confirm_email(identity.id)
    return identity


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def backend(session_factory):
    return DatabaseAuthBackend(session_factory)


@pytest.fixture
def coach_replies():
    """Requests seen by the fake chat-completion endpoint, and the reply it gives."""
    return {"requests": [], "status": 200, "content": "Keep going, you are doing great!"}


@pytest.fixture
def coach(coach_replies):
    def handler(request: httpx.Request) -> httpx.Response:
        coach_replies["requests"].append(request)
        if coach_replies["status"] != 200:
            return httpx.Response(coach_replies["status"], json={"error": {"message": "bad key"}})
        return httpx.Response(
            200,
            json={"choices": [{"message": {"role": "assistant", "content": coach_replies["content"]}}]},
        )

    return CoachService(transport=httpx.MockTransport(handler))


@pytest_asyncio.fixture
async def client(session_factory, coach):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_coach_service] = lambda: coach
    limiter.enabled = False
    try:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True


@pytest_asyncio.fixture
async def auth_headers(client, backend):
    await register(backend, "alice@example.com")
    resp = await client.post("/api/v1/auth/sign-in", json={"email": "alice@example.com", "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    token = resp.json()["session"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auto_confirm(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_AUTO_CONFIRM", True)
