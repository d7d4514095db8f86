"""Password hashing and bearer token primitives.

Passwords are hashed with the bcrypt_sha256 scheme: the UTF-8 password is
reduced with SHA-256 and base64 encoded before bcrypt sees it, so passwords
longer than bcrypt's 72 byte window are never silently truncated.

Access tokens are HS256 JWTs carrying ``sub`` (user id) and ``email``.
"""
import base64
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from roomchat.config import AppSettings, get_config
from roomchat.errors import Unauthenticated

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def _prehash(password: str) -> bytes:
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    rounds = rounds or get_config().auth.bcrypt_rounds
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_prehash(password), password_hash.encode("ascii"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def create_access_token(user_id: str, email: str, config: Optional[AppSettings] = None) -> str:
    config = config or get_config()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=config.auth.token_expire_minutes),
    }
    return jwt.encode(
        payload,
        config.secrets.jwt.secret_key,
        algorithm=config.secrets.jwt.algorithm,
    )


def decode_access_token(token: Optional[str], config: Optional[AppSettings] = None) -> dict:
    """Verify signature and expiry of *token* and return its claims.

    Raises:
        Unauthenticated: token missing, malformed, expired or badly signed.
    """
    if not token:
        raise Unauthenticated()
    config = config or get_config()
    try:
        payload = jwt.decode(
            token,
            config.secrets.jwt.secret_key,
            algorithms=[config.secrets.jwt.algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise Unauthenticated("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthenticated() from exc
    return payload


def extract_bearer(value: Optional[str]) -> Optional[str]:
    """Pull the token out of ``Bearer <token>``; a bare token is returned as is.

    The scheme name is matched case-insensitively.
    """
    if not value:
        return None
    value = value.lstrip()
    if value[:len(BEARER_PREFIX)].lower() == BEARER_PREFIX.lower():
        value = value[len(BEARER_PREFIX):]
    return value.strip() or None
