"""
Authentication Configuration

Settings for Supabase JWT validation and auth behavior.
"""

import os
from typing import Annotated, Optional
from functools import lru_cache
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


def parse_email_list(raw) -> list[str]:
    """Parse a comma-separated email list into lowercase addresses."""
    if not raw:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    return [email.strip().lower() for email in raw if email and email.strip()]


class AuthConfig(BaseSettings):
    """Authentication configuration loaded from environment."""

    # Supabase Configuration
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_jwt_secret: str = ""

    # JWT Settings
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"

    # Auth behavior
    auth_enabled: bool = True  # Set to False for local dev without auth

    # Role promotion by email (comma-separated in the environment)
    admin_emails: Annotated[list[str], NoDecode] = Field(default_factory=list)
    superuser_emails: Annotated[list[str], NoDecode] = Field(default_factory=list)

    class Config:
        env_prefix = ""
        extra = "ignore"

    @field_validator("admin_emails", "superuser_emails", mode="before")
    @classmethod
    def _split_emails(cls, value):
        return parse_email_list(value)

    @property
    def supabase_project_ref(self) -> Optional[str]:
        """Extract project reference from Supabase URL."""
        if not self.supabase_url:
            return None
        # https://abcdefg.supabase.co -> abcdefg
        ref = self.supabase_url.replace("https://", "").split(".")[0]
        return ref or None

    @property
    def is_configured(self) -> bool:
        """Check if auth is properly configured."""
        return bool(
            self.supabase_url and
            self.supabase_jwt_secret
        )


@lru_cache()
def get_auth_config() -> AuthConfig:
    """Get cached auth configuration."""
    return AuthConfig(
        supabase_url=os.getenv("SUPABASE_URL", ""),
        supabase_anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
        supabase_jwt_secret=os.getenv("SUPABASE_JWT_SECRET", ""),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        auth_enabled=os.getenv("AUTH_ENABLED", "true").lower() == "true",
        admin_emails=os.getenv("ADMIN_EMAILS", ""),
        superuser_emails=os.getenv("SUPERUSER_EMAILS", ""),
    )
