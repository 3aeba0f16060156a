"""HTTP surface of the dashboard."""

from .app import create_app
from .auth import User, get_current_user, require_auth

__all__ = ["create_app", "User", "get_current_user", "require_auth"]
