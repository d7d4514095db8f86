"""Registration, login and bearer credential verification.

AuthService owns the write side (register, login). IdentityVerifier turns a
bearer token into the minimal public identity used by protected routes and by
the realtime gateway.
"""
import logging
import re
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from roomchat.errors import Conflict, Unauthenticated, ValidationError
from roomchat.models import User

from .schemas import TokenResponse, UserCreated, UserPublic
from .security import create_access_token, decode_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

NAME_MIN, NAME_MAX = 2, 50
PASSWORD_MIN, PASSWORD_MAX = 6, 100

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_registration(name: str, email: str, password: str) -> List[str]:
    """Return every rule the registration input violates."""
    errors = []
    name = (name or "").strip()
    if len(name) < NAME_MIN:
        errors.append(f"name too short: must be at least {NAME_MIN} characters")
    elif len(name) > NAME_MAX:
        errors.append(f"name too long: must be at most {NAME_MAX} characters")
    if not EMAIL_RE.match(email or ""):
        errors.append("email must be a valid email address")
    if len(password or "") < PASSWORD_MIN:
        errors.append(f"password too short: must be at least {PASSWORD_MIN} characters")
    elif len(password) > PASSWORD_MAX:
        errors.append(f"password too long: must be at most {PASSWORD_MAX} characters")
    return errors


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def register(self, name: str, email: str, password: str) -> UserCreated:
        """Create a user account.

        Raises:
            ValidationError: any field breaks its length/format rule.
            Conflict: the email is already registered.
        """
        errors = validate_registration(name, email, password)
        if errors:
            raise ValidationError(errors)

        email = normalize_email(email)
        logger.info("Attempting to register user: %s", email)

        if await self._find_by_email(email) is not None:
            logger.warning("Registration failed: user already exists with email %s", email)
            raise Conflict("User already exists")

        password_hash = await run_in_threadpool(hash_password, password)
        user = User(name=name.strip(), email=email, password_hash=password_hash)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            # lost a race against a concurrent registration for the same email
            await self.db.rollback()
            logger.warning("Registration failed: concurrent insert for %s", email)
            raise Conflict("User already exists") from exc
        await self.db.refresh(user)

        logger.info("User registered successfully: %s (ID: %s)", user.email, user.id)
        return UserCreated.from_model(user)

    async def login(self, email: str, password: str) -> TokenResponse:
        email = normalize_email(email or "")
        logger.info("Attempting login for user: %s", email)

        user = await self._find_by_email(email)
        if user is None:
            logger.warning("Login failed: user not found with email %s", email)
            raise Unauthenticated("User not found")

        if not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.warning("Login failed: invalid password for user %s", email)
            raise Unauthenticated("Password is incorrect")

        token = create_access_token(user.id, user.email)
        logger.info("User logged in successfully: %s (ID: %s)", user.email, user.id)
        return TokenResponse(access_token=token)


class IdentityVerifier:
    """Stateless token check plus a single user-existence lookup."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def validate_user(self, user_id: str) -> Optional[UserPublic]:
        user = await self.db.get(User, user_id)
        if user is None:
            logger.debug("User validation failed: %s not found", user_id)
            return None
        return UserPublic.from_model(user)

    async def verify(self, token: Optional[str]) -> UserPublic:
        """Resolve *token* to the identity it encodes.

        Raises:
            Unauthenticated: token is missing/invalid/expired or the user is gone.
        """
        payload = decode_access_token(token)
        user = await self.validate_user(str(payload["sub"]))
        if user is None:
            raise Unauthenticated()
        return user
