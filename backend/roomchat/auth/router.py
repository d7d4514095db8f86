"""Auth router for account endpoints.

Endpoints:
    POST /auth/register  - Create an account
    POST /auth/login     - Exchange email + password for a bearer token
    GET  /me             - Return the caller's public identity
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.database import get_db
from roomchat.errors import Unauthenticated

from .schemas import LoginRequest, RegisterRequest, TokenResponse, UserCreated, UserPublic
from .security import extract_bearer
from .service import AuthService, IdentityVerifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> UserPublic:
    """Dependency guarding protected routes with ``Authorization: Bearer``."""
    token = extract_bearer(authorization)
    if token is None:
        raise Unauthenticated()
    return await IdentityVerifier(db).verify(token)


@router.post("/auth/register", response_model=UserCreated, status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)) -> UserCreated:
    """Register a new user. Responds 409 when the email is taken."""
    return await AuthService(db).register(body.name, body.email, body.password)


@router.post("/auth/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    return await AuthService(db).login(body.email, body.password)


@router.get("/me", response_model=UserPublic)
async def me(user: UserPublic = Depends(get_current_user)) -> UserPublic:
    return user
