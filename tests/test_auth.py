"""
Auth endpoint tests: login, registration, session resolution, profile edits
and the error codes of the session authenticator.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cms.models import ActivityLog, User
from conftest import DEFAULT_PASSWORD, auth_headers, credentials, test_settings


async def _activity_count(db: AsyncSession, action: str | None = None) -> int:
    q = select(func.count()).select_from(ActivityLog)
    if action is not None:
        q = q.where(ActivityLog.action == action)
    return (await db.execute(q)).scalar_one()


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_login_token_resolves_to_same_user(async_client: AsyncClient, editor: User):
    resp = await async_client.post("/api/auth/login", json={
        "email": "editor@example.com",
        "password": DEFAULT_PASSWORD,
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["id"] == editor.id
    assert data["user"]["role"] == "editor"
    assert "password_hash" not in data["user"]

    me = await async_client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == editor.id


@pytest.mark.asyncio
async def test_login_records_activity_for_the_user(
    async_client: AsyncClient, db_session: AsyncSession, member: User
):
    resp = await async_client.post("/api/auth/login", json={
        "email": "member@example.com",
        "password": DEFAULT_PASSWORD,
    })
    assert resp.status_code == 200

    rows = (await db_session.execute(
        select(ActivityLog.user_id, ActivityLog.entity_type, ActivityLog.entity_id, ActivityLog.ip_address)
        .where(ActivityLog.action == "login")
    )).all()
    assert rows == [(member.id, "user", member.id, "127.0.0.1")]


@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient, db_session: AsyncSession, member: User):
    resp = await async_client.post("/api/auth/login", json={
        "email": "member@example.com",
        "password": "not-the-password",
    })
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid email or password"}
    assert "token" not in resp.json()
    assert await _activity_count(db_session) == 0


@pytest.mark.asyncio
async def test_login_unknown_email(async_client: AsyncClient, db_session: AsyncSession):
    resp = await async_client.post("/api/auth/login", json={
        "email": "nobody@example.com",
        "password": DEFAULT_PASSWORD,
    })
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid email or password"
    assert await _activity_count(db_session) == 0


@pytest.mark.asyncio
async def test_login_missing_fields(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/login", json={"email": "member@example.com"})
    assert resp.status_code == 400
    assert "password" in resp.json()["error"]


@pytest.mark.asyncio
async def test_login_inactive_account(async_client: AsyncClient, make_user):
    await make_user("sleeper", status="inactive")
    resp = await async_client.post("/api/auth/login", json={
        "email": "sleeper@example.com",
        "password": DEFAULT_PASSWORD,
    })
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_creates_plain_user(async_client: AsyncClient, db_session: AsyncSession):
    resp = await async_client.post("/api/auth/register", json={
        "username": "newbie",
        "email": "newbie@example.com",
        "password": "hunter22",
    })
    assert resp.status_code == 201
    data = resp.json()
    assert data["user"]["role"] == "user"
    assert data["user"]["status"] == "active"
    assert data["token"]

    entry = (await db_session.execute(
        select(ActivityLog.user_id, ActivityLog.entity_id).where(ActivityLog.action == "register")
    )).one()
    assert entry == (data["user"]["id"], data["user"]["id"])


@pytest.mark.asyncio
async def test_register_short_password(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/register", json={
        "username": "shorty",
        "email": "shorty@example.com",
        "password": "12345",
    })
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_register_duplicate_email(async_client: AsyncClient, db_session: AsyncSession, member: User):
    resp = await async_client.post("/api/auth/register", json={
        "username": "someone-else",
        "email": "member@example.com",
        "password": "hunter22",
    })
    assert resp.status_code == 400
    assert resp.json()["error"] == "Username or email is already in use"
    assert await _activity_count(db_session, "register") == 0


# ---------------------------------------------------------------------------
# Session authenticator
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_me_without_token(async_client: AsyncClient):
    resp = await async_client.get("/api/auth/me")
    assert resp.status_code == 401
    assert "error" in resp.json()


@pytest.mark.asyncio
async def test_me_with_garbage_token(async_client: AsyncClient):
    resp = await async_client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid or expired session, please log in again"


@pytest.mark.asyncio
async def test_me_with_expired_token(async_client: AsyncClient, member: User):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {"sub": str(member.id), "iat": past, "exp": past + timedelta(hours=1)},
        test_settings.SECRET_KEY,
        algorithm="HS256",
    )
    resp = await async_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_with_token_signed_by_other_key(async_client: AsyncClient, member: User):
    token = jwt.encode(
        {"sub": str(member.id), "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "some-other-key",
        algorithm="HS256",
    )
    resp = await async_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_for_deleted_user(async_client: AsyncClient):
    token = credentials.create_access_token(9999, "admin")
    resp = await async_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "User no longer exists"


@pytest.mark.asyncio
async def test_me_for_disabled_account(async_client: AsyncClient, make_user):
    user = await make_user("disabled", status="inactive")
    resp = await async_client.get("/api/auth/me", headers=auth_headers(user))
    assert resp.status_code == 403
    assert resp.json()["error"] == "Account is disabled"


# ---------------------------------------------------------------------------
# Profile / logout
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_profile_username(async_client: AsyncClient, member: User, member_headers):
    resp = await async_client.put("/api/auth/profile", json={"username": "renamed"}, headers=member_headers)
    assert resp.status_code == 200
    assert resp.json()["username"] == "renamed"
    assert resp.json()["email"] == "member@example.com"


@pytest.mark.asyncio
async def test_update_profile_password_requires_current(async_client: AsyncClient, member_headers):
    resp = await async_client.put("/api/auth/profile", json={"new_password": "brandnew1"}, headers=member_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_update_profile_password_wrong_current(async_client: AsyncClient, member_headers):
    resp = await async_client.put("/api/auth/profile", json={
        "current_password": "wrong-one",
        "new_password": "brandnew1",
    }, headers=member_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Current password is incorrect"


@pytest.mark.asyncio
async def test_update_profile_password_then_login(async_client: AsyncClient, member_headers):
    resp = await async_client.put("/api/auth/profile", json={
        "current_password": DEFAULT_PASSWORD,
        "new_password": "brandnew1",
    }, headers=member_headers)
    assert resp.status_code == 200

    old = await async_client.post("/api/auth/login", json={"email": "member@example.com", "password": DEFAULT_PASSWORD})
    assert old.status_code == 401
    new = await async_client.post("/api/auth/login", json={"email": "member@example.com", "password": "brandnew1"})
    assert new.status_code == 200


@pytest.mark.asyncio
async def test_update_profile_duplicate_email(async_client: AsyncClient, editor: User, member_headers):
    resp = await async_client.put("/api/auth/profile", json={"email": "editor@example.com"}, headers=member_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_logout_records_activity(
    async_client: AsyncClient, db_session: AsyncSession, member: User, member_headers
):
    resp = await async_client.post("/api/auth/logout", headers=member_headers)
    assert resp.status_code == 200
    assert resp.json() == {"message": "Logged out successfully"}

    entry = (await db_session.execute(
        select(ActivityLog.user_id, ActivityLog.entity_id).where(ActivityLog.action == "logout")
    )).one()
    assert entry == (member.id, member.id)


@pytest.mark.asyncio
async def test_long_password_round_trip(async_client: AsyncClient, db_session: AsyncSession, make_user):
    password = "p" * 100
    user = await make_user("longpass", password=password)
    digest = (await db_session.execute(select(User.password_hash).where(User.id == user.id))).scalar_one()
    assert credentials.verify_password(password, digest)
    assert not credentials.verify_password("p" * 99, digest)
