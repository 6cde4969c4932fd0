# villa_booking/core/security.py

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import jwt, JWTError
from passlib.context import CryptContext

from villa_booking.core.config import settings

# --------------------------------------
# Password hashing config
# --------------------------------------
# pbkdf2_sha256 instead of bcrypt: no 72-byte input limit and no
# dependency on the bcrypt C extension
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# --------------------------------------
# Token creation helpers
# --------------------------------------

def _create_token(
    data: Dict[str, Any],
    expires_delta: timedelta,
    *,
    secret_key: str,
    token_type: str,
) -> str:
    """
    Every token carries a random jti, so two tokens minted for the same
    user in the same second still differ (refresh rotation relies on it).
    """
    now = datetime.now(timezone.utc)
    claims = {
        **data,
        "iat": now,
        "exp": now + expires_delta,
        "type": token_type,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, secret_key, algorithm=settings.JWT_ALGORITHM)


def token_claims(user) -> Dict[str, Any]:
    return {"sub": str(user.id), "user_id": user.id, "role": user.role}


def create_access_token(data: Dict[str, Any]) -> str:
    expire = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _create_token(
        data=data,
        expires_delta=expire,
        secret_key=settings.JWT_SECRET_KEY,
        token_type="access",
    )


def create_refresh_token(data: Dict[str, Any]) -> str:
    expire = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _create_token(
        data=data,
        expires_delta=expire,
        secret_key=settings.JWT_REFRESH_SECRET_KEY,
        token_type="refresh",
    )


# --------------------------------------
# Token verification helpers
# --------------------------------------

def _verify(token: str, secret_key: str, token_type: str) -> Dict[str, Any]:
    payload = jwt.decode(
        token,
        secret_key,
        algorithms=[settings.JWT_ALGORITHM],
    )

    if payload.get("type") != token_type:
        raise JWTError("Invalid token type")

    if "user_id" not in payload:
        raise JWTError("Missing user_id in token")

    return payload


def verify_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate an *access* token.
    Used by get_current_user.
    """
    return _verify(token, settings.JWT_SECRET_KEY, "access")


def verify_refresh_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a *refresh* token (signed with its own secret).
    """
    return _verify(token, settings.JWT_REFRESH_SECRET_KEY, "refresh")
