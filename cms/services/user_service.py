"""
User service: CRUD and profile operations for the User aggregate.

Username/email uniqueness is checked up front so the common duplicate case
gets a clear message.  The unique constraints in the schema remain the
authoritative guard, and an ``IntegrityError`` at flush is reported the same
way.
"""
import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cms.errors import Conflict, ValidationError
from cms.models import User
from cms.query import ListQuery, PageRequest, pagination_envelope
from cms.schemas import ProfileUpdate, RegisterRequest, UserCreate, UserUpdate
from cms.security import CredentialVerifier

logger = logging.getLogger(__name__)

DUPLICATE_USER_MESSAGE = "Username or email is already in use"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_to_dict(user: User) -> dict:
    """Serialise a User ORM instance to a plain dict; the digest is never included."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "status": user.status,
        "avatar": user.avatar,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def _ensure_unique(
    db: AsyncSession, username: str, email: str, exclude_id: int | None = None
) -> None:
    q = select(User.id).where(or_(User.username == username, User.email == email))
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    if (await db.execute(q.limit(1))).first() is not None:
        raise Conflict(DUPLICATE_USER_MESSAGE)


async def _flush_unique(db: AsyncSession) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        raise Conflict(DUPLICATE_USER_MESSAGE) from exc


async def _get_orm_user(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_users(
    db: AsyncSession,
    page: PageRequest,
    search: str | None = None,
    role: str | None = None,
    status: str | None = None,
) -> dict:
    """Return a filtered page of users, newest first."""
    q = (
        ListQuery(User)
        .search(search, User.username, User.email)
        .equals(User.role, role)
        .equals(User.status, status)
    )
    total: int = (await db.execute(q.count())).scalar_one()
    result = await db.execute(q.page_of(select(User), page))

    return {
        "users": [_user_to_dict(u) for u in result.scalars().all()],
        "pagination": pagination_envelope(page, total),
    }


async def get_user(db: AsyncSession, user_id: int) -> dict | None:
    user = await _get_orm_user(db, user_id)
    return _user_to_dict(user) if user else None


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def count_users(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(User))).scalar_one()


async def create_user(
    db: AsyncSession, data: UserCreate | RegisterRequest, credentials: CredentialVerifier
) -> dict:
    """
    Create a user and return its serialised dict.

    Self-registration passes a ``RegisterRequest`` and always gets the
    ``user`` role; the admin path may choose role and status.
    """
    await _ensure_unique(db, data.username, data.email)

    user = User(
        username=data.username,
        email=data.email,
        password_hash=credentials.hash_password(data.password),
        role=getattr(data, "role", "user"),
        status=getattr(data, "status", "active"),
        avatar=getattr(data, "avatar", None),
    )
    db.add(user)
    await _flush_unique(db)
    await db.refresh(user)
    logger.info("Created user id=%s username=%r role=%s", user.id, user.username, user.role)
    return _user_to_dict(user)


async def update_user(
    db: AsyncSession, user_id: int, data: UserUpdate, credentials: CredentialVerifier
) -> dict | None:
    """
    Partially update a user (admin path).  Returns None when the user does
    not exist.  A new password is re-hashed before it is stored.
    """
    user = await _get_orm_user(db, user_id)
    if user is None:
        return None

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    if "username" in update_data or "email" in update_data:
        await _ensure_unique(
            db,
            update_data.get("username", user.username),
            update_data.get("email", user.email),
            exclude_id=user.id,
        )

    password = update_data.pop("password", None)
    if password:
        user.password_hash = credentials.hash_password(password)

    for field, value in update_data.items():
        setattr(user, field, value)

    await _flush_unique(db)
    await db.refresh(user)
    logger.info("Updated user id=%s fields=%s", user.id, sorted(update_data) + (["password"] if password else []))
    return _user_to_dict(user)


async def update_profile(
    db: AsyncSession, user_id: int, data: ProfileUpdate, credentials: CredentialVerifier
) -> dict:
    """
    Self-service profile edit.  Changing the password requires the current
    one; username/email changes are checked against every other account.
    """
    user = await _get_orm_user(db, user_id)
    if user is None:
        raise ValidationError("User no longer exists")

    if data.new_password:
        if not data.current_password:
            raise ValidationError("Current password is required to set a new one")
        if not credentials.verify_password(data.current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")

    if data.username or data.email:
        await _ensure_unique(
            db, data.username or user.username, data.email or user.email, exclude_id=user.id
        )
        user.username = data.username or user.username
        user.email = data.email or user.email

    if data.avatar is not None:
        user.avatar = data.avatar
    if data.new_password:
        user.password_hash = credentials.hash_password(data.new_password)

    await _flush_unique(db)
    await db.refresh(user)
    return _user_to_dict(user)


async def delete_user(db: AsyncSession, user_id: int, acting_user_id: int) -> bool:
    """
    Delete a user.  Returns False when the user does not exist.

    Their articles go with them (``ON DELETE CASCADE``); their activity log
    entries stay with a null ``user_id`` (``ON DELETE SET NULL``).
    """
    if user_id == acting_user_id:
        raise ValidationError("You cannot delete your own account")

    if await _get_orm_user(db, user_id) is None:
        return False

    await db.execute(delete(User).where(User.id == user_id))
    logger.info("Deleted user id=%s by user id=%s", user_id, acting_user_id)
    return True
