"""Password hashing (bcrypt) and access tokens (JWT)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import bcrypt
from jose import jwt

from folderhub.config import settings


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the DB
        return False


def create_access_token(username: str, role: str, expires_minutes: int | None = None) -> str:
    """Sign a JWT carrying the username as subject and the role as a claim."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.token_expire_minutes
    )
    return jwt.encode(
        {"sub": username, "role": role, "exp": expire},
        settings.secret_key,
        algorithm=settings.token_algorithm,
    )
