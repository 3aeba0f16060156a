"""Session-based authentication dependencies."""

from typing import Optional
from fastapi import Request
from pydantic import BaseModel

from ..errors import AuthRequired


class User(BaseModel):
    """Authenticated user model."""
    id: str
    email: str


def get_current_user(request: Request) -> Optional[User]:
    """Get current user from session (optional - returns None if not logged in)."""
    user_data = request.session.get("user")
    if not user_data:
        return None
    return User(**user_data)


def require_auth(request: Request) -> User:
    """Require authenticated user (raises AuthRequired if not logged in)."""
    user = get_current_user(request)
    if not user:
        raise AuthRequired()
    return user
