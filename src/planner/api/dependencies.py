"""FastAPI dependency injection for API endpoints."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from planner.api.auth.jwt import TokenPayload, decode_token
from planner.common.config import get_settings
from planner.common.database import get_db
from planner.common.exceptions import AuthenticationError
from planner.common.logging import bind_context
from planner.services.backup import ImportContext

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for request."""
    async for session in get_db():
        yield session


DbSession = Annotated[AsyncSession, Depends(get_session)]


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None,
        Depends(security),
    ],
) -> TokenPayload | None:
    """Get current authenticated user from JWT token.

    Returns:
        Token payload if authenticated, None when auth is disabled.

    Raises:
        AuthenticationError: If the token is missing.
        InvalidTokenError: If the token cannot be decoded.
    """
    settings = get_settings()

    if not settings.auth.enabled:
        return None

    if not credentials:
        raise AuthenticationError()

    return decode_token(credentials.credentials)


CurrentUser = Annotated[TokenPayload | None, Depends(get_current_user)]


async def require_auth(
    user: CurrentUser,
) -> TokenPayload:
    """Require an authenticated caller.

    With auth disabled every request acts as the ``anonymous`` user.
    """
    settings = get_settings()

    if not settings.auth.enabled:
        return TokenPayload(sub="anonymous", exp=0, iat=0)

    if user is None:
        raise AuthenticationError()

    bind_context(user_id=user.sub)
    return user


AuthenticatedUser = Annotated[TokenPayload, Depends(require_auth)]


def get_import_context(user: AuthenticatedUser) -> ImportContext:
    """Caller identity for snapshot and template operations."""
    return ImportContext(user_id=user.sub, email=user.email)


CallerContext = Annotated[ImportContext, Depends(get_import_context)]
