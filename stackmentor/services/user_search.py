"""Composable search predicates over users.

Each builder returns a SQLAlchemy boolean expression. Empty input yields an
always-true predicate so callers can combine filters unconditionally.
"""

from sqlalchemy import and_, func, or_, true
from sqlalchemy.sql.elements import ColumnElement

from stackmentor.models.user import UserDB


def _like(value: str) -> str:
    return f"%{value.lower()}%"


def is_verified() -> ColumnElement[bool]:
    """Only verified users are searchable."""
    return UserDB.is_verified.is_(True)


def first_name_contains(first_name: str | None) -> ColumnElement[bool]:
    """Case-insensitive partial match on first name."""
    if first_name is None or not first_name.strip():
        return true()
    return func.lower(UserDB.first_name).like(_like(first_name.strip()))


def last_name_contains(last_name: str | None) -> ColumnElement[bool]:
    """Case-insensitive partial match on last name."""
    if last_name is None or not last_name.strip():
        return true()
    return func.lower(UserDB.last_name).like(_like(last_name.strip()))


def name_contains(name: str | None) -> ColumnElement[bool]:
    """Search by whole name or part of one.

    "ada lov" must match first AND last name; a single word may match
    either of them.
    """
    if name is None or not name.strip():
        return true()

    trimmed = name.strip().lower()
    if " " in trimmed:
        first_part, last_part = trimmed.split(None, 1)
        return and_(first_name_contains(first_part), last_name_contains(last_part))

    return or_(first_name_contains(trimmed), last_name_contains(trimmed))


def has_role(role: str | None) -> ColumnElement[bool]:
    """Case-insensitive role match."""
    if role is None or not role.strip():
        return true()
    return func.lower(UserDB.role) == role.strip().lower()


def experience_in_range(min_years: int | None, max_years: int | None) -> ColumnElement[bool]:
    """Years of experience within the given (inclusive) bounds."""
    if min_years is None and max_years is None:
        return true()
    if min_years is not None and max_years is not None:
        return UserDB.years_of_experience.between(min_years, max_years)
    if min_years is not None:
        return UserDB.years_of_experience >= min_years
    return UserDB.years_of_experience <= max_years


def has_industries(industries: list[str] | None) -> ColumnElement[bool]:
    """Industry is one of the given values, ignoring case."""
    cleaned = [industry.strip().lower() for industry in industries or [] if industry and industry.strip()]
    if not cleaned:
        return true()
    return func.lower(UserDB.industry).in_(cleaned)


def search_with_filters(
    search_text: str | None,
    role: str | None,
    min_years: int | None,
    max_years: int | None,
    industries: list[str] | None,
) -> ColumnElement[bool]:
    """Combined predicate used by the user search endpoint."""
    return and_(
        is_verified(),
        name_contains(search_text),
        has_role(role),
        experience_in_range(min_years, max_years),
        has_industries(industries),
    )
