"""Shared pytest fixtures and configuration.

This module provides common fixtures used across all test types.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import date

# Settings read at import time by the application modules
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.pop("SMTP_HOST", None)

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import models to register them with Base.metadata
from stackmentor import models  # noqa: F401
from stackmentor.auth.passwords import hash_password
from stackmentor.models.base import Base, utcnow
from stackmentor.models.user import RoleType, UserDB, calculate_age
from stackmentor.services.database import DatabaseManager

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture
def test_database_url(tmp_path) -> str:
    """Provide a test database URL.

    Uses file-based SQLite per test to avoid in-memory connection issues,
    or PostgreSQL if TEST_DATABASE_URL is configured.
    """
    return os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path}/test_stackmentor.db"


@pytest.fixture
async def async_db_session(test_database_url: str) -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session for testing.

    Creates tables before each test and drops them after.
    """
    engine = create_async_engine(test_database_url, echo=False)

    if test_database_url.startswith("sqlite"):

        @event.listens_for(engine.sync_engine, "connect")
        def enable_foreign_keys(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_manager(test_database_url: str) -> AsyncGenerator[DatabaseManager, None]:
    """DatabaseManager with a fresh schema, as the application uses it."""
    manager = DatabaseManager(test_database_url)
    await manager.initialize_async()
    await manager.create_tables()

    yield manager

    await manager.drop_tables()
    await manager.close()


def build_user(
    first_name: str = "Ada",
    last_name: str = "Lovelace",
    email: str | None = None,
    role: RoleType = RoleType.MENTOR,
    is_verified: bool = True,
    years_of_experience: int | None = 10,
    industry: str | None = "Software",
) -> UserDB:
    """Build a user row with sensible defaults for direct insertion."""
    date_of_birth = date(1990, 5, 17)
    return UserDB(
        user_id=uuid.uuid4(),
        email=email or f"{first_name}.{last_name}.{uuid.uuid4().hex[:6]}@example.com".lower(),
        password_hash=hash_password(TEST_PASSWORD),
        first_name=first_name,
        last_name=last_name,
        date_of_birth=date_of_birth,
        age=calculate_age(date_of_birth),
        city="Austin",
        state="TX",
        role=role.value,
        position="member",
        years_of_experience=years_of_experience,
        industry=industry,
        is_verified=is_verified,
        created_at=utcnow(),
    )


@pytest.fixture
def make_user(async_db_session: AsyncSession):
    """Factory fixture inserting users into the test database."""

    async def _make_user(**kwargs) -> UserDB:
        user = build_user(**kwargs)
        async_db_session.add(user)
        await async_db_session.commit()
        return user

    return _make_user


@pytest.fixture
def registration_payload() -> dict:
    """A valid registration request body."""
    return {
        "name": "Grace Hopper",
        "email": "Grace.Hopper@Example.com",
        "password": TEST_PASSWORD,
        "date_of_birth": "1990-05-17",
        "role": "mentor",
        "years_of_experience": 12,
        "skills_or_interests": ["Python", " Compilers "],
        "city": "Arlington",
        "state": "va",
    }


@pytest.fixture
def user_builder():
    """The ``build_user`` helper, for tests that insert rows themselves."""
    return build_user
