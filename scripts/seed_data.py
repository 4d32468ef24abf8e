#!/usr/bin/env python3
"""
Seed Data Script for Snapbook

Creates a small development dataset:
- 1 Scrum Master and 3 developers
- 1 Project with an active two-week sprint around today
- A handful of cards with estimates and assignees

Prints a bearer token per user so the API can be exercised right away.

Usage:
    python scripts/seed_data.py              # Add seed data
    python scripts/seed_data.py --clear      # Clear all data first
"""
import asyncio
import sys
from datetime import timedelta

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from snapbook.config import get_settings
from snapbook.core.auth import create_access_token
from snapbook.core.clock import SystemClock
from snapbook.database import async_session, create_schema, engine
from snapbook.models import (
    Card,
    CardRAGHistory,
    DailyLock,
    DailySummary,
    Project,
    Snap,
    Sprint,
    SprintStatus,
    User,
)


# ==================== DATA DEFINITIONS ====================

USERS_DATA = [
    {"email": "sarah.sm@example.com", "full_name": "Sarah Chen", "is_scrum_master": True},
    {"email": "mike.dev@example.com", "full_name": "Mike Johnson"},
    {"email": "priya.dev@example.com", "full_name": "Priya Patel"},
    {"email": "tom.dev@example.com", "full_name": "Tom Brown"},
]

CARDS_DATA = [
    {"title": "Login page", "estimated_time": 16, "assignee": "mike.dev@example.com"},
    {"title": "Session API", "estimated_time": 24, "assignee": "mike.dev@example.com"},
    {"title": "Payment webhook", "estimated_time": 8, "assignee": "priya.dev@example.com"},
    {"title": "Audit log export", "estimated_time": 12, "assignee": "tom.dev@example.com"},
    {"title": "Dashboard charts", "estimated_time": 20, "assignee": None},
]


# ==================== SEED FUNCTIONS ====================

async def clear_all_data(session: AsyncSession):
    print("🗑️  Clearing existing data...")

    # Delete in correct order (respecting foreign keys)
    for model in (DailySummary, DailyLock, CardRAGHistory, Snap, Card, Sprint, Project, User):
        await session.execute(delete(model))

    await session.commit()
    print("✅ All data cleared")


async def seed(session: AsyncSession):
    settings = get_settings()
    today = SystemClock(settings.timezone).today()

    print("\n👥 Creating users...")
    users_map = {}
    for user_data in USERS_DATA:
        user = User(
            email=user_data["email"],
            full_name=user_data["full_name"],
            is_scrum_master=user_data.get("is_scrum_master", False),
            is_active=True,
        )
        session.add(user)
        users_map[user.email] = user
    await session.flush()

    print("\n📁 Creating project and sprint...")
    project = Project(name="Checkout Revamp", description="New checkout flow")
    session.add(project)
    await session.flush()

    sprint = Sprint(
        name="Sprint 1",
        goal="Ship the login and payment flow",
        start_date=today - timedelta(days=3),
        end_date=today + timedelta(days=10),
        status=SprintStatus.ACTIVE,
        daily_standup_count=1,
        project_id=project.id,
    )
    session.add(sprint)
    await session.flush()
    print(f"  ✓ {sprint.name}: {sprint.start_date} → {sprint.end_date}")

    print("\n🗂️  Creating cards...")
    for card_data in CARDS_DATA:
        assignee = users_map.get(card_data["assignee"])
        session.add(Card(
            title=card_data["title"],
            estimated_time=card_data["estimated_time"],
            project_id=project.id,
            sprint_id=sprint.id,
            assignee_id=assignee.id if assignee else None,
        ))
        print(f"  ✓ {card_data['title']} ({card_data['estimated_time']}h)")

    await session.commit()

    print("\n🔑 Bearer tokens:")
    for user in users_map.values():
        token = create_access_token({"sub": str(user.id)}, expires_delta=timedelta(days=7))
        print(f"  {user.full_name}: {token}")


async def main(clear: bool):
    await create_schema()

    async with async_session() as session:
        if clear:
            await clear_all_data(session)
        await seed(session)

    await engine.dispose()
    print("\n✅ Seed data created")


if __name__ == "__main__":
    asyncio.run(main("--clear" in sys.argv))
