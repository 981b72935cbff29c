"""JWT access token issuing and validation."""

import os
import uuid
from datetime import timedelta

import structlog
from jose import JWTError, jwt

from stackmentor.models.base import utcnow

logger = structlog.get_logger(__name__)

DEV_SECRET_KEY = "stackmentor-dev-secret-change-me"
ACCESS_TOKEN_TYPE = "access"


class TokenValidator:
    """Issues and validates signed access tokens.

    Tokens carry the user id in ``sub`` and are signed with a shared secret,
    so validation needs no round trip to the database.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        expire_minutes: int | None = None,
    ):
        """Initialize token validator.

        Args:
            secret_key: Signing key (defaults to JWT_SECRET_KEY env var)
            algorithm: JWT algorithm (defaults to JWT_ALGORITHM env var, HS256)
            expire_minutes: Token lifetime (defaults to ACCESS_TOKEN_EXPIRE_MINUTES, 60)
        """
        self.secret_key = secret_key or os.getenv("JWT_SECRET_KEY")
        if not self.secret_key:
            logger.warning("jwt_secret_not_configured", hint="set JWT_SECRET_KEY in production")
            self.secret_key = DEV_SECRET_KEY
        self.algorithm = algorithm or os.getenv("JWT_ALGORITHM", "HS256")
        self.expire_minutes = expire_minutes or int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

    @property
    def expires_in_seconds(self) -> int:
        return self.expire_minutes * 60

    def create_access_token(self, user_id: uuid.UUID, email: str) -> str:
        """Issue an access token for a user.

        Args:
            user_id: Subject of the token
            email: User email, included for client convenience

        Returns:
            Encoded JWT
        """
        issued_at = utcnow()
        claims = {
            "sub": str(user_id),
            "email": email,
            "type": ACCESS_TOKEN_TYPE,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + timedelta(minutes=self.expire_minutes)).timestamp()),
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> dict | None:
        """Validate an access token and return its claims.

        Args:
            token: Encoded JWT

        Returns:
            Claims dict with ``user_id`` added if valid, None otherwise
        """
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

        if claims.get("type") != ACCESS_TOKEN_TYPE:
            return None

        try:
            claims["user_id"] = uuid.UUID(claims["sub"])
        except (KeyError, TypeError, ValueError):
            return None

        return claims

    def extract_token_from_header(self, authorization: str | None) -> str | None:
        """Extract bearer token from Authorization header.

        Args:
            authorization: Authorization header value

        Returns:
            Token string if valid format, None otherwise
        """
        if not authorization or not authorization.startswith("Bearer "):
            return None

        token = authorization[7:].strip()  # Remove "Bearer " prefix
        return token or None
