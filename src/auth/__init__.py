"""
Authentication and Authorization Module

Supabase JWT Auth:
- Users sign up/login via Supabase Auth
- JWTs are validated against the Supabase JWT secret or JWKS
- Users are synced to the local database on first access
- Role-based access control (user, admin, superuser)

Usage:
    # Any authenticated user
    @router.get("/me")
    def me(current_user: User = Depends(get_current_user)):
        ...

    # Super User analysis endpoints
    @router.post("/create")
    def create(current_user: User = Depends(require_superuser)):
        ...
"""

from .config import AuthConfig, get_auth_config
from .jwt import verify_supabase_token, extract_user_info, JWTError
from .models import User, UserRole
from .sync import sync_user_from_supabase, get_user_by_id, resolve_role
from .dependencies import (
    get_current_user,
    require_superuser,
    SUPERUSER_REQUIRED,
)

__all__ = [
    # Config
    "AuthConfig",
    "get_auth_config",
    # JWT validation
    "verify_supabase_token",
    "extract_user_info",
    "JWTError",
    # User model
    "User",
    "UserRole",
    # User sync
    "sync_user_from_supabase",
    "get_user_by_id",
    "resolve_role",
    # FastAPI dependencies
    "get_current_user",
    "require_superuser",
    "SUPERUSER_REQUIRED",
]
