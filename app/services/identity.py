import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DuplicateUser, InvalidCredentials, ValidationError
from app.core.security import create_session_token, get_password_hash, verify_password
from app.core.utils import normalize_username
from app.models.user import ROLE_PARTICIPANT, ROLES, User

logger = logging.getLogger(__name__)

MAX_USERNAME_LENGTH = 100


@dataclass
class LoginResult:
    user: User
    token: str
    device_id: str
    previous_session_invalidated: bool


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.username == normalize_username(username)))
    return result.scalar_one_or_none()


async def register(db: AsyncSession, username: str, password: str, role: str) -> User:
    """Create an account. Registration never logs the user in."""
    name = normalize_username(username)
    if not name or len(name) > MAX_USERNAME_LENGTH:
        raise ValidationError("Username is required (max 100 characters)")
    if not password:
        raise ValidationError("Password is required")
    if role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")

    if await get_user_by_username(db, name):
        raise DuplicateUser()

    user = User(username=name, hashed_password=get_password_hash(password), role=role)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same name
        await db.rollback()
        raise DuplicateUser()
    await db.refresh(user)
    logger.info(f"Registered {role} {name}")
    return user


async def login(db: AsyncSession, username: str, password: str, device_id: Optional[str] = None) -> LoginResult:
    """Authenticate and make ``device_id`` the user's only active device."""
    device_id = (device_id or "").strip() or uuid.uuid4().hex

    result = await db.execute(
        select(User).where(User.username == normalize_username(username)).with_for_update()
    )
    user = result.scalar_one_or_none()
    if not user or not verify_password(password or "", user.hashed_password):
        await db.rollback()
        raise InvalidCredentials()

    previous = user.active_device_id
    invalidated = previous is not None and previous != device_id
    user.active_device_id = device_id
    await db.commit()

    if invalidated:
        logger.info(f"Login for {user.username} from a new device superseded the previous session")
    else:
        logger.info(f"Login for {user.username}")

    return LoginResult(
        user=user,
        token=create_session_token(user, device_id),
        device_id=device_id,
        previous_session_invalidated=invalidated,
    )


async def logout(db: AsyncSession, user_id: int, device_id: str):
    """Clear the active device if it is still ``device_id``; safe to repeat."""
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.active_device_id == device_id)
        .values(active_device_id=None)
    )
    await db.commit()
    if result.rowcount:
        logger.info(f"Logged out user {user_id}")


async def list_participants(db: AsyncSession) -> list[User]:
    result = await db.execute(
        select(User).where(User.role == ROLE_PARTICIPANT).order_by(User.username.asc())
    )
    return list(result.scalars().all())


async def active_devices(db: AsyncSession, user_ids) -> dict:
    """Currently active device per user id; logged-out users are left out."""
    if not user_ids:
        return {}
    result = await db.execute(
        select(User.id, User.active_device_id).where(
            User.id.in_(list(user_ids)), User.active_device_id.is_not(None)
        )
    )
    return {user_id: device_id for user_id, device_id in result.all()}
