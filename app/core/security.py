import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import AuthenticationError, InvalidCredentials, PermissionDenied, SessionExpired
from app.core.utils import utcnow
from app.db.session import get_db
from app.models.user import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_session_token(user: User, device_id: str) -> str:
    """Issue a credential bound to (user, device)."""
    return create_access_token({"sub": str(user.id), "device": device_id, "role": user.role})


def decode_access_token(token: str, verify_exp: bool = True) -> dict:
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_exp": verify_exp},
        )
    except ExpiredSignatureError:
        raise SessionExpired()
    except JWTError:
        raise InvalidCredentials("Invalid session token")
    if not payload.get("sub") or not payload.get("device"):
        raise InvalidCredentials("Invalid session token")
    return payload


async def resolve_session(db: AsyncSession, token: Optional[str]) -> User:
    """Map a token to its user, checking the device against the stored one.

    The check runs against the row as currently stored, so a login from a
    second device invalidates every token issued to the first.
    """
    if not token:
        raise AuthenticationError("Missing bearer token")

    payload = decode_access_token(token)
    result = await db.execute(select(User).where(User.id == int(payload["sub"])))
    user = result.scalar_one_or_none()
    if user is None:
        raise InvalidCredentials("Unknown user")
    if user.active_device_id != payload["device"]:
        logger.info(f"Rejected superseded session for {user.username}")
        raise SessionExpired()
    return user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    return await resolve_session(db, token)


async def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise PermissionDenied()
    return current_user


def get_token_payload(token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    """Decode the bearer token without the device or expiry checks (used by logout)."""
    if not token:
        raise AuthenticationError("Missing bearer token")
    return decode_access_token(token, verify_exp=False)
