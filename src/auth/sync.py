"""
User Synchronization from Supabase

Syncs user data from Supabase JWT to local database on first access.
"""

import logging
from datetime import datetime
from typing import Dict, Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from src.auth.models import User, UserRole
from src.auth.config import AuthConfig, get_auth_config
from src.auth.jwt import extract_user_info

logger = logging.getLogger(__name__)

# Promotion order; a sync only ever moves a user up this list
ROLE_RANK = {UserRole.USER: 0, UserRole.ADMIN: 1, UserRole.SUPERUSER: 2}


def resolve_role(user_info: Dict[str, Any], config: AuthConfig) -> Optional[UserRole]:
    """
    Role granted by configuration or token claims, if any.

    SUPERUSER_EMAILS and app_metadata.role == "superuser" grant SUPERUSER;
    ADMIN_EMAILS grants ADMIN. Returns None when nothing applies.
    """
    email = user_info["email"]
    if email in config.superuser_emails or user_info.get("app_role") == UserRole.SUPERUSER.value:
        return UserRole.SUPERUSER
    if email in config.admin_emails:
        return UserRole.ADMIN
    return None


def sync_user_from_supabase(
    db: Session,
    jwt_payload: Dict[str, Any],
) -> User:
    """
    Sync user from Supabase JWT payload to local database.

    Creates user on first access, updates on subsequent accesses.
    Roles are only ever promoted here, never demoted.

    Args:
        db: Database session
        jwt_payload: Verified JWT payload from Supabase

    Returns:
        Local User record (created or updated)
    """
    user_info = extract_user_info(jwt_payload)
    user_id = UUID(user_info["id"])
    granted_role = resolve_role(user_info, get_auth_config())

    user = db.query(User).filter(User.id == user_id).first()
    now = datetime.utcnow()

    if user is None:
        logger.info(f"Creating new user: {user_info['email']}")

        user = User(
            id=user_id,
            email=user_info["email"],
            full_name=user_info.get("full_name"),
            avatar_url=user_info.get("avatar_url"),
            provider=user_info.get("provider"),
            role=granted_role or UserRole.USER,
            is_active=True,
            last_sign_in_at=now,
            synced_at=now,
        )
        db.add(user)
    else:
        user.email = user_info["email"]
        user.full_name = user_info.get("full_name") or user.full_name
        user.avatar_url = user_info.get("avatar_url") or user.avatar_url
        user.last_sign_in_at = now
        user.synced_at = now

        if granted_role and ROLE_RANK[granted_role] > ROLE_RANK.get(user.role, 0):
            logger.info(f"Promoting {user.email} to {granted_role.value}")
            user.role = granted_role

    db.commit()
    db.refresh(user)
    return user


def get_user_by_id(db: Session, user_id: UUID) -> Optional[User]:
    """Get user by ID."""
    return db.query(User).filter(User.id == user_id).first()
