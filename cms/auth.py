"""
Session authenticator and role gate.

``get_current_user`` turns an ``Authorization: Bearer`` header into the
acting user's projection and attaches it to ``request.state.user``.
``require_roles`` layers a role check on top; ownership rules are checked
per resource with ``ensure_owner_or_admin``.
"""
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cms.database import get_db
from cms.errors import Forbidden, Unauthenticated
from cms.models import User
from cms.schemas import AuthenticatedUser
from cms.security import CredentialVerifier

http_bearer = HTTPBearer(auto_error=False)


def get_credentials(request: Request) -> CredentialVerifier:
    return request.app.state.credentials


async def load_user_projection(db: AsyncSession, user_id: int) -> AuthenticatedUser | None:
    q = select(
        User.id,
        User.username,
        User.email,
        User.role,
        User.status,
        User.avatar,
        User.created_at,
    ).where(User.id == user_id)
    row = (await db.execute(q)).mappings().one_or_none()
    if row is None:
        return None
    return AuthenticatedUser.model_validate(dict(row))


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    verifier: CredentialVerifier = Depends(get_credentials),
    db: AsyncSession = Depends(get_db),
) -> AuthenticatedUser:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()

    user_id = verifier.subject_of(credentials.credentials)
    user = await load_user_projection(db, user_id)
    if user is None:
        raise Unauthenticated("User no longer exists")
    if user.status != "active":
        raise Forbidden("Account is disabled")

    request.state.user = user
    return user


def require_roles(*roles: str):
    """Build a dependency that admits only authenticated users whose role is in *roles*."""
    allowed = frozenset(roles)

    async def role_gate(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        if user.role not in allowed:
            raise Forbidden(f"This action requires one of the roles: {', '.join(sorted(allowed))}")
        return user

    return role_gate


require_admin = require_roles("admin")
require_editor = require_roles("admin", "editor")


def ensure_owner_or_admin(user: AuthenticatedUser, owner_id: int | None, message: str | None = None) -> None:
    if user.role == "admin":
        return
    if owner_id is None or user.id != owner_id:
        raise Forbidden(message or "You can only modify your own content")
