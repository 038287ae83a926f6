from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cms.activity import ActivityRoute, records_activity
from cms.auth import get_credentials, get_current_user
from cms.database import get_db
from cms.errors import Forbidden, Unauthenticated
from cms.schemas import (
    AuthenticatedUser,
    LoginRequest,
    MessageResponse,
    ProfileUpdate,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from cms.security import CredentialVerifier
from cms.services import user_service

router = APIRouter(prefix="/api/auth", tags=["auth"], route_class=ActivityRoute)


@router.post("/login", response_model=TokenResponse)
@records_activity("login", "user", entity_is_actor=True)
async def login(
    request: Request,
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialVerifier = Depends(get_credentials),
):
    user = await user_service.get_user_by_email(db, data.email)
    # Same message for an unknown email and a wrong password.
    if user is None or not credentials.verify_password(data.password, user.password_hash):
        raise Unauthenticated("Invalid email or password")
    if user.status != "active":
        raise Forbidden("Account is disabled")

    current = AuthenticatedUser.model_validate(user)
    request.state.user = current
    return {"token": credentials.create_access_token(user.id, user.role), "user": current}


@router.post("/register", status_code=201, response_model=TokenResponse)
@records_activity("register", "user", entity_is_actor=True)
async def register(
    request: Request,
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialVerifier = Depends(get_credentials),
):
    created = await user_service.create_user(db, data, credentials)
    current = AuthenticatedUser.model_validate(created)
    request.state.user = current
    return {"token": credentials.create_access_token(current.id, current.role), "user": current}


@router.get("/me", response_model=AuthenticatedUser)
async def me(user: AuthenticatedUser = Depends(get_current_user)):
    return user


@router.put("/profile", response_model=UserResponse)
@records_activity("update_profile", "user", entity_is_actor=True)
async def update_profile(
    data: ProfileUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    credentials: CredentialVerifier = Depends(get_credentials),
):
    return await user_service.update_profile(db, user.id, data, credentials)


@router.post("/logout", response_model=MessageResponse)
@records_activity("logout", "user", entity_is_actor=True)
async def logout(user: AuthenticatedUser = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy.
    return {"message": "Logged out successfully"}
