"""Shared test fixtures and configuration.

Sets the required environment variables before the package is imported,
and provides an in-memory database seeded with one active sprint.
"""

import os

# Patch env vars BEFORE any snapbook imports
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENABLE_AI_PARSING", "false")

from datetime import date, timedelta
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from snapbook.config import TestingConfig
from snapbook.core.clock import FixedClock
from snapbook.database import create_schema
from snapbook.models import Card, Project, Snap, Sprint, SprintStatus, User
from snapbook.models.enums import RAGStatus
from snapbook.services.text_classifier import ParsedSnap, TextClassifier

TODAY = date(2025, 1, 5)


class StubClassifier(TextClassifier):
    """Returns a canned result and remembers what it was asked."""

    def __init__(self, result=None):
        self.result = result or ParsedSnap(
            done="Completed login page",
            to_do="Start API tomorrow",
            blockers="",
            suggested_rag=RAGStatus.GREEN,
        )
        self.calls = []

    async def classify(self, raw_text, card_title):
        self.calls.append((raw_text, card_title))
        return self.result


@pytest.fixture
def settings():
    return TestingConfig()


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def classifier():
    return StubClassifier()


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seed(db):
    """Two developers and a scrum master on a two-slot sprint that contains TODAY."""
    author = User(email="mike@example.com", full_name="Mike Johnson")
    other = User(email="priya@example.com", full_name="Priya Patel")
    scrum_master = User(email="sarah@example.com", full_name="Sarah Chen", is_scrum_master=True)
    project = Project(name="Checkout Revamp")
    db.add_all([author, other, scrum_master, project])
    await db.flush()

    sprint = Sprint(
        name="Sprint 1",
        start_date=TODAY - timedelta(days=4),
        end_date=TODAY + timedelta(days=9),
        status=SprintStatus.ACTIVE,
        daily_standup_count=2,
        project_id=project.id,
    )
    db.add(sprint)
    await db.flush()

    card = Card(
        title="Login page",
        estimated_time=16,
        project_id=project.id,
        sprint_id=sprint.id,
        assignee_id=author.id,
    )
    other_card = Card(
        title="Payment webhook",
        estimated_time=8,
        project_id=project.id,
        sprint_id=sprint.id,
        assignee_id=other.id,
    )
    db.add_all([card, other_card])
    await db.commit()

    return SimpleNamespace(
        author=author,
        other=other,
        scrum_master=scrum_master,
        project=project,
        sprint=sprint,
        card=card,
        other_card=other_card,
    )


async def add_snap(db, card, author, day, **fields):
    """Insert a snap directly, bypassing the service rules (for back-dated history)."""
    fields.setdefault("raw_input", fields.get("done") or "update")
    snap = Snap(card_id=card.id, created_by_id=author.id, snap_date=day, **fields)
    db.add(snap)
    await db.flush()
    return snap


async def reload(db, model, pk):
    return await db.get(model, pk, populate_existing=True)
