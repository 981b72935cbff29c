"""Business logic services for the StackMentor backend."""

from stackmentor.services.database import DatabaseManager, get_db_session

__all__ = [
    "DatabaseManager",
    "get_db_session",
]
