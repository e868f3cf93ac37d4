import os

# Keep the module-level engine off PostgreSQL when the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from notifier.models import Base
from notifier.services.dispatcher import NotificationDispatcher
from notifier.services.provider import PushProvider
from notifier.services.registry import TokenRegistry

# FCM registration tokens are long; broadcasts skip anything of 50 chars or less
LONG_TOKEN_A = "fcm-a-" + "a" * 60
LONG_TOKEN_B = "fcm-b-" + "b" * 60


class FakePushProvider(PushProvider):
    """Records payloads; raises the configured exception for chosen tokens."""

    name = "fake"

    def __init__(self):
        self.calls: list[dict] = []
        self.errors: dict[str, Exception] = {}

    async def send(self, payload: dict) -> str:
        self.calls.append(payload)
        error = self.errors.get(payload["token"])
        if error is not None:
            raise error
        return f"projects/test/messages/{len(self.calls)}"


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "push.db"


@pytest.fixture
def session_maker(db_path):
    # Schema is created with a sync engine so no event loop is involved
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def registry(session_maker):
    return TokenRegistry(session_maker)


@pytest.fixture
def provider():
    return FakePushProvider()


@pytest.fixture
def dispatcher(provider, registry):
    return NotificationDispatcher(provider, registry)


@pytest.fixture
def client(provider, session_maker):
    from notifier.main import app, configure_services

    configure_services(app, provider, session_maker)
    return TestClient(app)
