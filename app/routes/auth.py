import secrets
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.cache import results_cache
from app.core.config import settings
from app.core.errors import PermissionDenied
from app.core.security import get_current_user, get_token_payload, oauth2_scheme, resolve_session
from app.db.session import get_db
from app.models.user import ROLE_ADMIN, User
from app.schemas.auth import UserCreate, LoginIn, LoginOut, MeOut, SuccessOut
from app.services import identity

router = APIRouter()

def user_info(user: User) -> dict:
    return {"id": user.id, "username": user.username, "role": user.role}

def admin_key_matches(key: Optional[str]) -> bool:
    expected = settings.ADMIN_REGISTRATION_KEY
    return bool(expected and key) and secrets.compare_digest(key.encode(), expected.encode())

@router.post("/users/register", response_model=SuccessOut)
async def register(
    user: UserCreate,
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
):
    """Open for participants; admins are created by an admin or with the registration key."""
    if user.role == ROLE_ADMIN:
        if not admin_key_matches(user.adminKey):
            caller = await resolve_session(db, token) if token else None
            if caller is None or not caller.is_admin:
                raise PermissionDenied("Only an admin can register another admin")
    await identity.register(db, user.username, user.password, user.role)
    # A new participant shows up on the leaderboard with zero points
    results_cache.invalidate()
    return {"success": True}

@router.post("/users/login", response_model=LoginOut)
async def login(credentials: LoginIn, db: AsyncSession = Depends(get_db)):
    result = await identity.login(db, credentials.username, credentials.password, credentials.deviceId)
    return {
        "success": True,
        "token": result.token,
        "token_type": "bearer",
        "deviceId": result.device_id,
        "user": user_info(result.user),
        "previousSessionInvalidated": result.previous_session_invalidated,
    }

@router.post("/users/logout", response_model=SuccessOut)
async def logout(payload: dict = Depends(get_token_payload), db: AsyncSession = Depends(get_db)):
    """Clear this token's device. A token already superseded still logs out cleanly."""
    await identity.logout(db, int(payload["sub"]), payload["device"])
    return {"success": True}

@router.get("/users/me", response_model=MeOut)
async def me(current_user: User = Depends(get_current_user)):
    return {"success": True, "user": user_info(current_user)}
