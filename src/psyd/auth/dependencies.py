"""
FastAPI authentication dependencies.

``get_request_context`` resolves the caller once per request (FastAPI caches
dependency results within a request) and every other dependency builds on it.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import jwt
import structlog
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from psyd.auth.jwt import verify_token
from psyd.auth.roles import UserRole, meets_minimum
from psyd.auth.service import get_profile, get_user_by_id
from psyd.database import get_session
from psyd.db.models import Profile, User

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class RequestContext:
    """Caller identity and profile for the current request. Never mutated after resolution."""

    user: User | None = None
    profile: Profile | None = None

    @property
    def role(self) -> str | None:
        return self.profile.role if self.profile is not None else None

    @property
    def user_id(self) -> uuid.UUID | None:
        return self.user.id if self.user is not None else None


async def get_request_context(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> RequestContext:
    """
    Resolve the optional caller identity.

    Anonymous requests get an empty context; a present but invalid token is a 401.
    """
    if credentials is None:
        return RequestContext()

    try:
        payload = verify_token(credentials.credentials, expected_type="access")
        user_id = uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid or expired session") from e

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    profile = await get_profile(db, user.id)
    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return RequestContext(user=user, profile=profile)


async def require_user(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Require a signed-in caller."""
    if ctx.user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return ctx


def require_role(minimum: UserRole) -> Callable[..., Awaitable[RequestContext]]:
    """
    Build a dependency that requires a signed-in caller whose role meets ``minimum``.

    The failure message is deliberately generic.
    """

    async def _require_role(ctx: RequestContext = Depends(require_user)) -> RequestContext:
        if not meets_minimum(ctx.role, minimum):
            raise HTTPException(status_code=403, detail="Unauthorized")
        return ctx

    return _require_role
