"""Pytest fixtures for statutory payroll tests.

Each test gets its own file-backed SQLite database under ``tmp_path`` so the
async store and the sync reconciler can open separate connections to it.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from statutory_payroll.api.app import create_app
from statutory_payroll.config import Settings
from statutory_payroll.database import Database
from statutory_payroll.events import DomainEvent, EventEmitter
from statutory_payroll.models import Base
from statutory_payroll.services.lifecycle import BonusLifecycle, GratuityLifecycle
from statutory_payroll.services.record_store import RecordStore


def make_settings(db_path: Path, **overrides) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{db_path}",
        database_url_sync=f"sqlite:///{db_path}",
        **overrides,
    )


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "statutory_payroll.db"


@pytest.fixture
def settings(db_path: Path) -> Settings:
    """Settings pointing at a per-test SQLite file."""
    return make_settings(db_path)


@pytest.fixture
def settings_for(db_path: Path):
    """Build settings for the same database with overrides (e.g. active statuses)."""

    def factory(**overrides) -> Settings:
        return make_settings(db_path, **overrides)

    return factory


@pytest.fixture
def sync_engine(settings: Settings) -> Generator[Engine, None, None]:
    """Sync engine with tables but no active-record indexes."""
    engine = create_engine(settings.database_url_sync)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Connected database with schema and active-record indexes in place."""
    db = Database.from_settings(settings).connect()
    await db.init_schema(settings)
    yield db
    await db.dispose()


class RecordingHandler:
    """Collects every event it receives."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    def __call__(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list[DomainEvent]:
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
def recorded() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def emitter(recorded: RecordingHandler) -> EventEmitter:
    emitter = EventEmitter()
    emitter.on_all(recorded)
    return emitter


@pytest.fixture
def bonus_store(database: Database, settings: Settings) -> RecordStore:
    return RecordStore.for_bonus(database, settings)


@pytest.fixture
def gratuity_store(database: Database, settings: Settings) -> RecordStore:
    return RecordStore.for_gratuity(database, settings)


@pytest.fixture
def bonuses(database: Database, settings: Settings, emitter: EventEmitter) -> BonusLifecycle:
    return BonusLifecycle.create(database, settings, emitter)


@pytest.fixture
def gratuities(
    database: Database, settings: Settings, emitter: EventEmitter
) -> GratuityLifecycle:
    return GratuityLifecycle.create(database, settings, emitter)


@pytest_asyncio.fixture
async def client(
    settings: Settings, database: Database, emitter: EventEmitter
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to an app sharing the test database."""
    app = create_app(settings, database=database, emitter=emitter)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def employee_id() -> UUID:
    return uuid4()

