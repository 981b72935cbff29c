"""User account and email verification models."""

import re
import uuid
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)

from stackmentor.models.base import Base, utcnow

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
BCRYPT_MAX_BYTES = 72
EMAIL_MAX_LENGTH = 100
NAME_PART_MAX_LENGTH = 30


class RoleType(str, Enum):
    """Community role chosen at registration."""

    MENTOR = "mentor"
    MENTEE = "mentee"


class PositionType(str, Enum):
    """Platform-wide position of a user."""

    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"


def split_csv(value: str | None) -> list[str] | None:
    """Split a comma-joined column back into a list."""
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def calculate_age(date_of_birth: date, today: date | None = None) -> int:
    """Whole years elapsed since ``date_of_birth``."""
    today = today or date.today()
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


# ========== SQLAlchemy ORM Models ==========


class UserDB(Base):
    """SQLAlchemy model for users table."""

    __tablename__ = "users"

    user_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(16), nullable=True, unique=True)
    email = Column(String(100), nullable=False, unique=True)
    phone_number = Column(String(15), nullable=True, unique=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(30), nullable=True)
    last_name = Column(String(30), nullable=True)
    date_of_birth = Column(Date, nullable=False)
    city = Column(String(26), nullable=True)
    state = Column(String(2), nullable=True)
    gender = Column(String(20), nullable=True)
    age = Column(Integer, nullable=True)
    profile_picture_url = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    role = Column(String(10), nullable=False)
    position = Column(String(15), nullable=False, default=PositionType.MEMBER.value)
    job_title = Column(String(100), nullable=True)
    years_of_experience = Column(Integer, nullable=True)
    industry = Column(String(100), nullable=True)
    skills = Column(Text, nullable=True)
    interests = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    is_verified = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            f"role IN ('{RoleType.MENTOR.value}', '{RoleType.MENTEE.value}')",
            name="users_role_check",
        ),
        CheckConstraint(
            f"position IN ('{PositionType.ADMIN.value}', '{PositionType.MODERATOR.value}', "
            f"'{PositionType.MEMBER.value}')",
            name="users_position_check",
        ),
        Index("idx_users_name", "last_name", "first_name"),
    )

    @property
    def full_name(self) -> str:
        """Display name used in groups and messages."""
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class VerificationTokenDB(Base):
    """SQLAlchemy model for verification_tokens table (one token per user)."""

    __tablename__ = "verification_tokens"

    token_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    token = Column(String(64), nullable=False, unique=True)
    user_id = Column(Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, unique=True)
    expiry_date = Column(DateTime(timezone=True), nullable=False)


# ========== Pydantic Models ==========


class RegisterUserRequest(BaseModel):
    """Registration payload.

    Every required field defaults to None so that a missing field reports the
    same message as a blank one, and all field errors surface together.
    """

    name: str | None = Field(None, validate_default=True)
    email: str | None = Field(None, validate_default=True)
    password: str | None = Field(None, validate_default=True)
    date_of_birth: date | None = Field(None, validate_default=True, description="ISO format YYYY-MM-DD")
    role: RoleType | None = Field(None, validate_default=True)
    years_of_experience: int | None = Field(None, ge=0, le=80)
    skills_or_interests: list[str] = Field(default_factory=list)
    city: str | None = Field(None, validate_default=True, max_length=26)
    state: str | None = Field(None, validate_default=True)
    gender: str | None = Field(None, max_length=20)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("Full name is required")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("Email is required")
        if not EMAIL_PATTERN.match(v.strip()):
            raise ValueError("Please provide a valid email address")
        if len(v.strip()) > EMAIL_MAX_LENGTH:
            raise ValueError(f"Email must be at most {EMAIL_MAX_LENGTH} characters long")
        return v.strip()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("Password is required")
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long")
        if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes long")
        return v

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: date | None) -> date:
        if v is None:
            raise ValueError("Date of birth is required")
        if v >= date.today():
            raise ValueError("Date of birth must be in the past")
        return v

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: RoleType | None) -> RoleType:
        if v is None:
            raise ValueError("Role is required")
        return v

    @field_validator("city")
    @classmethod
    def validate_city(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("City is required")
        return v.strip()

    @field_validator("state")
    @classmethod
    def validate_state(cls, v: str | None) -> str:
        if v is None or not v.strip():
            raise ValueError("State is required")
        if len(v.strip()) != 2:
            raise ValueError("State must be 2 characters")
        return v.strip().upper()

    @field_validator("skills_or_interests")
    @classmethod
    def strip_entries(cls, v: list[str]) -> list[str]:
        """Drop blank entries; commas would corrupt the stored list."""
        return [item.strip().replace(",", " ") for item in v if item and item.strip()]


class LoginRequest(BaseModel):
    """Credentials for obtaining an access token."""

    email: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=1)


class ResendVerificationRequest(BaseModel):
    """Request a fresh verification email."""

    email: str = Field(..., min_length=3, max_length=100)


class TokenResponse(BaseModel):
    """Bearer token issued on login."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")


class UserProfile(BaseModel):
    """Public view of a user account."""

    user_id: uuid.UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date
    city: str | None = None
    state: str | None = None
    gender: str | None = None
    age: int | None = None
    profile_picture_url: str | None = None
    bio: str | None = None
    role: RoleType
    job_title: str | None = None
    years_of_experience: int | None = None
    industry: str | None = None
    skills: list[str] | None = None
    interests: list[str] | None = None
    created_at: datetime | None = None
    position: PositionType
    is_verified: bool

    @classmethod
    def from_db(cls, user: UserDB) -> "UserProfile":
        """Build the profile from an ORM row, expanding comma-joined lists."""
        return cls(
            user_id=user.user_id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            date_of_birth=user.date_of_birth,
            city=user.city,
            state=user.state,
            gender=user.gender,
            age=user.age,
            profile_picture_url=user.profile_picture_url,
            bio=user.bio,
            role=user.role,
            job_title=user.job_title,
            years_of_experience=user.years_of_experience,
            industry=user.industry,
            skills=split_csv(user.skills),
            interests=split_csv(user.interests),
            created_at=user.created_at,
            position=user.position,
            is_verified=bool(user.is_verified),
        )
