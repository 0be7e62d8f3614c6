"""Password hashing, access tokens and the request-level identity dependencies."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.models.user import User
from app.services.security_guards import ensure_role
from app.services.user_service import get_user_by_id

pwd_context: CryptContext = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme: HTTPBearer = HTTPBearer(auto_error=True)


def get_password_hash(password: str) -> str:
    if not password:
        raise ValueError("Password must not be empty")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user: User, expires_minutes: int | None = None) -> str:
    """Sign a bearer token naming the user and the role it was issued for."""
    expire: datetime = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.jwt_expire_minutes
    )
    claims: dict[str, Any] = {"sub": str(user.id), "role": user.role, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _credentials_error(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def verify_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise _credentials_error("Could not validate credentials") from exc


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the active user behind the bearer token.

    Tokens issued before a role change are rejected so a demoted vendor or
    admin cannot keep acting with the old role.
    """
    payload: dict[str, Any] = verify_token(credentials.credentials)
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise _credentials_error("Invalid authentication token") from exc

    user: User | None = get_user_by_id(db=db, user_id=user_id)
    if user is None or not user.is_active:
        raise _credentials_error("User not found")
    if payload.get("role") != user.role:
        raise _credentials_error("Token role is stale")
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    """Build a dependency that admits only users holding one of roles."""
    allowed = {role.upper() for role in roles}

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        ensure_role(current_user, allowed)
        return current_user

    return dependency


require_admin = require_roles("ADMIN")
