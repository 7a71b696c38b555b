# student_registry/api/deps.py

import uuid
from typing import AsyncGenerator, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from student_registry.core.database import get_session
from student_registry.core.exceptions import Forbidden, Unauthorized
from student_registry.core.security import decode_token
from student_registry.models.user import UserRole
from student_registry.schemas.auth import SessionIdentity


# ------------------------------------------------------------
# HTTP Bearer Authentication
# ------------------------------------------------------------
# auto_error=False so a missing header is reported as our own 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)


# ------------------------------------------------------------
# DB Session
# ------------------------------------------------------------
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


# ------------------------------------------------------------
# Authenticate: decode the session token (no DB round-trip)
# ------------------------------------------------------------
async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> SessionIdentity:

    if credentials is None or not credentials.credentials:
        raise Unauthorized("Not authorized, no token provided")

    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Session expired, please log in again")
    except jwt.InvalidTokenError:
        raise Unauthorized("Not authorized, token is invalid")

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise Unauthorized("Invalid token payload")

    role = payload.get("role")
    if not role:
        raise Unauthorized("Invalid token payload")

    identity = SessionIdentity(user_id=user_id, role=str(role))
    request.state.identity = identity
    return identity


# ------------------------------------------------------------
# Authorize: role check, only ever runs after authentication
# ------------------------------------------------------------
def role_required(*allowed_roles: UserRole):
    """
    Enforces that the authenticated identity has one of the allowed roles.
    Comparison is case-insensitive and accepts enum members or strings.
    """

    def normalize_role(role):
        if isinstance(role, UserRole):
            return role.value.strip().lower()
        return str(role).strip().lower()

    normalized_allowed = {normalize_role(r) for r in allowed_roles}

    async def checker(identity: SessionIdentity = Depends(get_current_identity)) -> SessionIdentity:
        if normalize_role(identity.role) not in normalized_allowed:
            raise Forbidden(f"User role '{identity.role}' is not authorized to access this route")

        return identity

    return checker


# ------------------------------------------------------------
# Exposed dependencies for routers
# ------------------------------------------------------------
require_authority = role_required(UserRole.Authority)
