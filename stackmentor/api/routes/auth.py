"""Registration, email verification and login endpoints."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stackmentor.api.middleware.auth import get_token_validator
from stackmentor.api.middleware.rate_limiter import check_rate_limit
from stackmentor.auth.token_validator import TokenValidator
from stackmentor.models.user import (
    LoginRequest,
    RegisterUserRequest,
    ResendVerificationRequest,
    TokenResponse,
    UserProfile,
)
from stackmentor.services.database import get_db_session
from stackmentor.services.email_service import EmailService
from stackmentor.services.user_service import UserService

router = APIRouter(prefix="/api/auth", tags=["auth"])

_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """FastAPI dependency returning the shared email sender."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


@router.post(
    "/register",
    response_model=UserProfile,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_rate_limit)],
)
async def register(
    request: RegisterUserRequest,
    db: AsyncSession = Depends(get_db_session),
    email_service: EmailService = Depends(get_email_service),
) -> UserProfile:
    """Register a mentor or mentee.

    The account stays unverified until the emailed link is followed.
    """
    return await UserService(db, email_service).register_user(request)


@router.get("/verify")
async def verify_email(
    token: str = Query(..., min_length=1, max_length=64),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Confirm an email address using the token from the verification link."""
    user = await UserService(db).verify_email(token)
    return {"status": "verified", "user_id": str(user.user_id)}


@router.post(
    "/resend-verification",
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(check_rate_limit)],
)
async def resend_verification(
    request: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db_session),
    email_service: EmailService = Depends(get_email_service),
) -> dict:
    """Send a fresh verification link, invalidating the previous one."""
    await UserService(db, email_service).resend_verification(request.email)
    return {"status": "sent"}


@router.post("/login", response_model=TokenResponse, dependencies=[Depends(check_rate_limit)])
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
    token_validator: TokenValidator = Depends(get_token_validator),
) -> TokenResponse:
    """Exchange email and password for a bearer token."""
    user = await UserService(db).authenticate(request.email, request.password)
    return TokenResponse(
        access_token=token_validator.create_access_token(user.user_id, user.email),
        expires_in=token_validator.expires_in_seconds,
    )
