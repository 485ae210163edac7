"""
Authentication and authorization.

- Password hashing (passlib bcrypt)
- Signed session tokens (python-jose JWT, HS256)
- protect: FastAPI dependency resolving the bearer token to the current user
- authorize(*roles): dependency factory gating role-restricted routes
- ensure_owner_or_admin: the ownership rule shared by posts and categories
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from pymongo.database import Database

from config import get_settings
from database import USERS, format_datetime, get_db
from errors import AuthError, ForbiddenError

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{get_settings().api_prefix}/auth/login", auto_error=False)

PUBLIC_USER_FIELDS = ("name", "email", "avatar", "bio", "location", "website", "role", "created_at")


class CurrentUser(BaseModel):
    id: str
    name: str
    email: str
    role: str = "user"
    avatar: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None

    @property
    def object_id(self) -> ObjectId:
        return ObjectId(self.id)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def token_for_user(user_id) -> str:
    return create_access_token({"sub": str(user_id)})


def public_user(doc: dict) -> dict:
    """User fields safe to return to clients (never the password hash)."""
    out = {"id": str(doc["_id"])}
    for name in PUBLIC_USER_FIELDS:
        value = doc.get(name)
        out[name] = format_datetime(value) if isinstance(value, datetime) else value
    return out


def protect(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Database = Depends(get_db),
) -> CurrentUser:
    credentials_exception = AuthError("Not authorized to access this route")
    if not token:
        raise credentials_exception
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
        user_id: Optional[str] = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        doc = db[USERS].find_one({"_id": ObjectId(user_id)})
    except (JWTError, InvalidId, TypeError):
        raise credentials_exception

    if not doc:
        raise credentials_exception

    return CurrentUser(**public_user(doc))


def authorize(*roles: str) -> Callable:
    """Dependency factory: the current user must hold one of ``roles``."""

    def _check(current_user: CurrentUser = Depends(protect)) -> CurrentUser:
        if current_user.role not in roles:
            raise ForbiddenError(f"User role {current_user.role} is not authorized to access this route")
        return current_user

    return _check


def is_owner_or_admin(owner_id, user: CurrentUser) -> bool:
    return str(owner_id) == user.id or user.is_admin


def ensure_owner_or_admin(owner_id, user: CurrentUser, message: str) -> None:
    if not is_owner_or_admin(owner_id, user):
        raise ForbiddenError(message)
