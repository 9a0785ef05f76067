"""JWT authentication utilities."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel

from planner.common.config import get_settings
from planner.common.exceptions import InvalidTokenError


class TokenPayload(BaseModel):
    """JWT token payload."""

    sub: str  # Caller user ID
    exp: int
    iat: int
    email: str | None = None


def create_access_token(
    subject: str,
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        subject: User ID the token authenticates.
        email: Optional email, echoed into exported snapshots.
        expires_delta: Token lifetime. Uses config default if not provided.

    Returns:
        Encoded JWT token.
    """
    settings = get_settings()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.auth.access_token_expire_minutes)

    now = datetime.now(UTC)
    expire = now + expires_delta

    payload: dict[str, Any] = {
        "sub": subject,
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp()),
        "type": "access",
    }
    if email:
        payload["email"] = email

    return jwt.encode(
        payload,
        settings.auth.secret_key.get_secret_value(),
        algorithm=settings.auth.algorithm,
    )


def decode_token(token: str) -> TokenPayload:
    """Decode and validate a JWT token.

    Raises:
        InvalidTokenError: If token is invalid, expired or has no subject.
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.auth.secret_key.get_secret_value(),
            algorithms=[settings.auth.algorithm],
        )
    except JWTError as e:
        raise InvalidTokenError(
            message="Invalid or expired token",
            cause=e,
        ) from e

    if not payload.get("sub"):
        raise InvalidTokenError(message="Token has no subject")

    return TokenPayload(
        sub=payload["sub"],
        exp=payload.get("exp", 0),
        iat=payload.get("iat", 0),
        email=payload.get("email"),
    )
