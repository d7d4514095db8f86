"""Pydantic schemas for registration, login and user projections."""
from pydantic import BaseModel, Field

from roomchat.models import User
from roomchat.schemas import UtcDateTime


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register.

    Length and format rules are enforced by AuthService so that every
    violation is reported in one response.
    """
    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str


class UserPublic(BaseModel):
    """Minimal identity projection. Never carries the password hash."""
    id: str
    name: str
    email: str

    @classmethod
    def from_model(cls, user: User) -> "UserPublic":
        return cls(id=user.id, name=user.name, email=user.email)


class UserCreated(UserPublic):
    createdAt: UtcDateTime

    @classmethod
    def from_model(cls, user: User) -> "UserCreated":
        return cls(id=user.id, name=user.name, email=user.email, createdAt=user.created_at)
