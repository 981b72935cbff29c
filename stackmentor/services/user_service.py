"""User registration, email verification, login and search."""

import asyncio
import uuid
from datetime import timedelta

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stackmentor.auth.passwords import hash_password, verify_password
from stackmentor.models.base import as_utc, utcnow
from stackmentor.models.user import (
    NAME_PART_MAX_LENGTH,
    PositionType,
    RegisterUserRequest,
    RoleType,
    UserDB,
    UserProfile,
    VerificationTokenDB,
    calculate_age,
)
from stackmentor.services import user_search
from stackmentor.services.email_service import EmailService
from stackmentor.services.errors import (
    AuthenticationError,
    ConflictError,
    EmailDeliveryError,
    InvalidRequestError,
    NotFoundError,
    TokenExpiredError,
)

logger = structlog.get_logger(__name__)

VERIFICATION_TOKEN_TTL = timedelta(hours=24)


def split_full_name(name: str) -> tuple[str, str]:
    """Split "First Last" into its two parts.

    Raises:
        InvalidRequestError: If the name is a single word, has middle names
            or a part is longer than the name columns allow
    """
    parts = name.split()
    if len(parts) < 2:
        raise InvalidRequestError("Only include your first and last name, separated by a space")
    if len(parts) > 2:
        raise InvalidRequestError("Full name must not include middle names")
    if any(len(part) > NAME_PART_MAX_LENGTH for part in parts):
        raise InvalidRequestError(
            f"First and last name must each be at most {NAME_PART_MAX_LENGTH} characters long"
        )
    return parts[0], parts[1]


def parse_experience_range(experience_range: str | None) -> tuple[int | None, int | None]:
    """Parse "N+" or "A-B" into (min, max) years.

    Raises:
        InvalidRequestError: For any other non-empty value
    """
    if experience_range is None or not experience_range.strip():
        return None, None

    value = experience_range.strip()
    try:
        if value.endswith("+"):
            return int(value[:-1].strip()), None
        if "-" in value:
            lower, upper = value.split("-", 1)
            min_years, max_years = int(lower.strip()), int(upper.strip())
            if min_years > max_years:
                raise ValueError(value)
            return min_years, max_years
    except ValueError:
        raise InvalidRequestError(f"Invalid experience range format: {experience_range}")

    raise InvalidRequestError(f"Invalid experience range format: {experience_range}")


class UserService:
    """Account lifecycle operations backed by the users table."""

    def __init__(self, db_session: AsyncSession, email_service: EmailService | None = None):
        """Initialize user service.

        Args:
            db_session: Database session for persistence
            email_service: Sender for verification mail
        """
        self.db_session = db_session
        self.email_service = email_service or EmailService()

    async def _find_by_email(self, email: str) -> UserDB | None:
        result = await self.db_session.execute(
            select(UserDB).where(UserDB.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        return await self._find_by_email(email) is not None

    async def get_user_db(self, user_id: uuid.UUID) -> UserDB:
        """Load a user row.

        Raises:
            NotFoundError: If no such user exists
        """
        user = await self.db_session.get(UserDB, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def get_user(self, user_id: uuid.UUID) -> UserProfile:
        return UserProfile.from_db(await self.get_user_db(user_id))

    async def register_user(self, request: RegisterUserRequest) -> UserProfile:
        """Register a new mentor or mentee and send the verification email.

        Args:
            request: Validated registration payload

        Returns:
            Profile of the created (unverified) user

        Raises:
            ConflictError: If the email is already registered
            InvalidRequestError: If the name is not exactly "First Last"
        """
        email = request.email.strip().lower()
        if await self.email_exists(email):
            raise ConflictError("Email already in use")

        first_name, last_name = split_full_name(request.name)

        user = UserDB(
            user_id=uuid.uuid4(),
            email=email,
            password_hash=await asyncio.to_thread(hash_password, request.password),
            first_name=first_name,
            last_name=last_name,
            date_of_birth=request.date_of_birth,
            city=request.city,
            state=request.state,
            gender=request.gender,
            years_of_experience=request.years_of_experience,
            role=RoleType(request.role).value,
            position=PositionType.MEMBER.value,
            is_verified=False,
            created_at=utcnow(),
        )

        # Mentors list what they can teach, mentees what they want to learn
        joined = ",".join(request.skills_or_interests)
        if request.role == RoleType.MENTOR:
            user.skills = joined
        else:
            user.interests = joined

        user.age = calculate_age(user.date_of_birth)

        self.db_session.add(user)
        try:
            await self.db_session.flush()
        except IntegrityError:
            # A concurrent registration took the email after the check above
            await self.db_session.rollback()
            raise ConflictError("Email already in use")
        token = await self._issue_verification_token(user.user_id)
        await self.db_session.commit()

        logger.info("user_registered", user_id=str(user.user_id), role=user.role)

        await self._send_verification(email, token)
        return UserProfile.from_db(user)

    async def _issue_verification_token(self, user_id: uuid.UUID) -> str:
        await self.db_session.execute(
            delete(VerificationTokenDB).where(VerificationTokenDB.user_id == user_id)
        )
        token = str(uuid.uuid4())
        self.db_session.add(
            VerificationTokenDB(
                token_id=uuid.uuid4(),
                token=token,
                user_id=user_id,
                expiry_date=utcnow() + VERIFICATION_TOKEN_TTL,
            )
        )
        return token

    async def _send_verification(self, email: str, token: str) -> None:
        try:
            await self.email_service.send_verification_email(email, token)
        except EmailDeliveryError as exc:
            # The account exists either way; the user can ask for a new link
            logger.warning("verification_email_failed", recipient=email, error=str(exc))

    async def verify_email(self, token: str) -> UserProfile:
        """Mark the owner of a verification token as verified.

        Raises:
            NotFoundError: If the token is unknown
            TokenExpiredError: If the token is past its expiry date
        """
        result = await self.db_session.execute(
            select(VerificationTokenDB).where(VerificationTokenDB.token == token)
        )
        verification = result.scalar_one_or_none()
        if verification is None:
            raise NotFoundError("Verification token not found")

        await self.db_session.delete(verification)

        if as_utc(verification.expiry_date) < utcnow():
            await self.db_session.commit()
            raise TokenExpiredError("Verification token has expired")

        user = await self.get_user_db(verification.user_id)
        user.is_verified = True
        await self.db_session.commit()

        logger.info("email_verified", user_id=str(user.user_id))
        return UserProfile.from_db(user)

    async def resend_verification(self, email: str) -> None:
        """Replace a user's verification token and mail the new link.

        Raises:
            NotFoundError: If the email is not registered
            ConflictError: If the account is already verified
        """
        user = await self._find_by_email(email)
        if user is None:
            raise NotFoundError("No account registered with this email")
        if user.is_verified:
            raise ConflictError("Email address is already verified")

        token = await self._issue_verification_token(user.user_id)
        await self.db_session.commit()
        await self._send_verification(user.email, token)

    async def authenticate(self, email: str, password: str) -> UserDB:
        """Check credentials for login.

        Raises:
            AuthenticationError: On unknown email or wrong password
            PermissionError: If the email has not been verified yet
        """
        user = await self._find_by_email(email)
        if user is None or not await asyncio.to_thread(verify_password, password, user.password_hash):
            raise AuthenticationError("Invalid email or password")
        if not user.is_verified:
            raise PermissionError("Email address has not been verified")
        return user

    async def search_users(
        self,
        search_text: str | None = None,
        role: str | None = None,
        experience_range: str | None = None,
        industries: list[str] | None = None,
        limit: int = 50,
    ) -> list[UserProfile]:
        """Search verified users by name, role, experience and industry.

        Args:
            search_text: Whole or partial name
            role: "mentor" or "mentee"
            experience_range: "N+" or "A-B" years
            industries: Accepted industries
            limit: Maximum results

        Returns:
            Matching profiles ordered by last then first name
        """
        trimmed = search_text.strip() if search_text is not None else None
        min_years, max_years = parse_experience_range(experience_range)

        query = (
            select(UserDB)
            .where(user_search.search_with_filters(trimmed, role, min_years, max_years, industries))
            .order_by(UserDB.last_name, UserDB.first_name)
            .limit(limit)
        )
        result = await self.db_session.execute(query)
        return [UserProfile.from_db(user) for user in result.scalars().all()]
