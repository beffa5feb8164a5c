"""Bearer tokens and credential hashing.

Tokens are HS256 JWTs carrying the user id under ``id`` (and ``sub``) plus
the role. Secrets and lifetime come from ``JWT_SECRET`` and
``JWT_EXPIRES_MIN``.
"""

import os
import secrets
from datetime import UTC, datetime, timedelta

import jwt
from passlib.context import CryptContext

from storefront.errors import AuthenticationError

ALGORITHM = "HS256"

password_ctx = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _secret() -> str:
    return os.getenv("JWT_SECRET", "dev-secret-change-me")


def _expires_minutes() -> int:
    return int(os.getenv("JWT_EXPIRES_MIN", str(60 * 24 * 30)))


def hash_password(password: str) -> str:
    return password_ctx.hash(password)


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return password_ctx.verify(password, hashed)


def generate_credential() -> str:
    """Random opaque password for accounts created on the shopper's behalf."""
    return secrets.token_hex(8)


def issue_token(user_id, role: str = "customer") -> str:
    now = datetime.now(UTC)
    payload = {
        "id": str(user_id),
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=_expires_minutes()),
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid token") from exc
