"""Shared SQLAlchemy declarative base for all models."""

from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

# Single Base for all models to ensure metadata consistency
# and allow foreign key relationships across model modules
Base = declarative_base()


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
