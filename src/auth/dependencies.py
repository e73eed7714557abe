"""
FastAPI Authentication Dependencies

Provides dependency injection for authentication and authorization.
"""

import logging
from typing import Optional
from uuid import uuid4

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from src.database.session import get_db
from src.auth.models import User, UserRole
from src.auth.jwt import verify_supabase_token, JWTError
from src.auth.sync import sync_user_from_supabase
from src.auth.config import get_auth_config

logger = logging.getLogger(__name__)

# HTTP Bearer token extraction
security = HTTPBearer(auto_error=False)

SUPERUSER_REQUIRED = "Access denied. Super user access required."
DEV_USER_EMAIL = "dev@snowball.local"


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user.

    Validates JWT, syncs user to local DB, returns User object.

    Raises:
        HTTPException 401: If not authenticated
        HTTPException 403: If user is disabled
    """
    config = get_auth_config()

    # If auth is disabled (local dev), return a mock user
    if not config.auth_enabled:
        return _get_dev_user(db)

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = verify_supabase_token(credentials.credentials)
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = sync_user_from_supabase(db, payload)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


async def require_superuser(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Require the current user to hold the Super User role.

    Raises:
        HTTPException 403: If user is not a super user
    """
    if not current_user.is_superuser:
        logger.info(f"Rejected non-superuser {current_user.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=SUPERUSER_REQUIRED,
        )
    return current_user


def _get_dev_user(db: Session) -> User:
    """
    Get or create a development user when auth is disabled.

    This allows local development without Supabase.
    """
    user = db.query(User).filter(User.email == DEV_USER_EMAIL).first()

    if not user:
        user = User(
            id=uuid4(),
            email=DEV_USER_EMAIL,
            full_name="Development User",
            role=UserRole.SUPERUSER,  # Dev user can run analyses
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

    return user
