"""Authentication dependencies for FastAPI."""

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from stackmentor.auth.token_validator import TokenValidator
from stackmentor.models.user import UserDB
from stackmentor.services.database import get_db_session

# Security scheme for Swagger UI
security = HTTPBearer(auto_error=False)


class AuthMiddleware:
    """Bearer token authentication against the users table."""

    def __init__(self, token_validator: TokenValidator | None = None):
        """Initialize auth middleware."""
        self.token_validator = token_validator or TokenValidator()

    def _unauthorized(self, detail: str) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

    async def verify_token(self, authorization: str | None, db_session: AsyncSession) -> UserDB:
        """Verify the access token and load its user.

        Args:
            authorization: Authorization header with Bearer token
            db_session: Database session used to load the user

        Returns:
            The authenticated user row

        Raises:
            HTTPException: If token is invalid, missing, or its user is gone
        """
        if not authorization:
            raise self._unauthorized("Missing Authorization header")

        # Extract token from header
        token = self.token_validator.extract_token_from_header(authorization)
        if not token:
            raise self._unauthorized("Invalid Authorization header format. Expected: Bearer <token>")

        claims = self.token_validator.decode_access_token(token)
        if not claims:
            raise self._unauthorized("Invalid or expired token")

        user = await db_session.get(UserDB, claims["user_id"])
        if user is None:
            raise self._unauthorized("User no longer exists")
        if not user.is_verified:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Email address has not been verified",
            )

        return user


# Global instance
auth_middleware = AuthMiddleware()


def get_token_validator() -> TokenValidator:
    """FastAPI dependency returning the shared token validator."""
    return auth_middleware.token_validator


async def get_current_user(
    request: Request,
    authorization: str | None = Header(None),
    db_session: AsyncSession = Depends(get_db_session),
) -> UserDB:
    """FastAPI dependency for getting current authenticated user.

    The user id is stored on ``request.state`` so the rate limiter can key on it.

    Example:
        @router.get("/users/me")
        async def me(user: UserDB = Depends(get_current_user)):
            return UserProfile.from_db(user)
    """
    user = await auth_middleware.verify_token(authorization, db_session)
    request.state.user_id = str(user.user_id)
    return user
