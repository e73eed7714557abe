"""
JWT Token Validation for Supabase Auth

Validates JWTs issued by Supabase. Symmetric tokens (HS256) are checked
against the project JWT secret, asymmetric ones against the project JWKS.
"""

import logging
from typing import Dict, Any
from functools import lru_cache

import jwt
from jwt import PyJWTError, PyJWKClient

from src.auth.config import AuthConfig, get_auth_config

logger = logging.getLogger(__name__)

# Asymmetric algorithms that require public key (JWKS) verification
ASYMMETRIC_ALGORITHMS = {"RS256", "RS384", "RS512", "ES256", "ES384", "ES512", "PS256", "PS384", "PS512"}


class JWTError(Exception):
    """Raised when a bearer token cannot be trusted."""
    pass


@lru_cache(maxsize=1)
def get_jwks_client(jwks_url: str) -> PyJWKClient:
    """Get cached JWKS client for fetching public keys."""
    return PyJWKClient(jwks_url, cache_keys=True, lifespan=3600)


def get_verification_key(token: str, config: AuthConfig) -> Any:
    """Return the JWT secret or the JWKS public key for this token."""
    if config.jwt_algorithm not in ASYMMETRIC_ALGORITHMS:
        if not config.supabase_jwt_secret:
            raise JWTError("SUPABASE_JWT_SECRET not configured")
        return config.supabase_jwt_secret

    project_ref = config.supabase_project_ref
    if not project_ref:
        raise JWTError(
            f"SUPABASE_URL required for {config.jwt_algorithm} algorithm. "
            "Set SUPABASE_URL environment variable."
        )

    jwks_url = f"https://{project_ref}.supabase.co/auth/v1/.well-known/jwks.json"

    try:
        return get_jwks_client(jwks_url).get_signing_key_from_jwt(token).key
    except PyJWTError as e:
        logger.error(f"Failed to fetch JWKS from {jwks_url}: {e}")
        raise JWTError(f"Failed to fetch public key from Supabase: {e}")


def verify_supabase_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a Supabase JWT token.

    Args:
        token: The JWT token from the Authorization header

    Returns:
        Decoded token payload containing user info

    Raises:
        JWTError: If token is invalid, expired, or malformed
    """
    config = get_auth_config()

    try:
        payload = jwt.decode(
            token,
            get_verification_key(token, config),
            algorithms=[config.jwt_algorithm],
            audience=config.jwt_audience,
        )
    except jwt.exceptions.InvalidAlgorithmError:
        raise JWTError(
            f"JWT algorithm mismatch: server expects '{config.jwt_algorithm}'. "
            f"Set JWT_ALGORITHM in environment variables."
        )
    except jwt.ExpiredSignatureError:
        raise JWTError("Token has expired")
    except jwt.InvalidAudienceError:
        raise JWTError("Invalid token audience")
    except jwt.InvalidSignatureError:
        raise JWTError("Invalid token signature")
    except jwt.DecodeError as e:
        raise JWTError(f"Token decode error: {e}")
    except PyJWTError as e:
        raise JWTError(f"Token validation error: {e}")

    if not payload.get("sub"):
        raise JWTError("Token missing 'sub' claim (user ID)")

    return payload


def extract_user_info(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract user information from a verified JWT payload.

    A "superuser" value in app_metadata.role grants the Super User role;
    Supabase only lets service-role clients write app_metadata.
    """
    user_metadata = payload.get("user_metadata") or {}
    app_metadata = payload.get("app_metadata") or {}

    return {
        "id": payload.get("sub"),
        "email": (payload.get("email") or "").lower(),
        "full_name": user_metadata.get("full_name") or user_metadata.get("name"),
        "avatar_url": user_metadata.get("avatar_url") or user_metadata.get("picture"),
        "provider": app_metadata.get("provider", "email"),
        "app_role": app_metadata.get("role"),
    }
