"""
Authentication Tests

Tests for Supabase JWT validation, user sync and the Super User gate.
"""

import pytest
from datetime import datetime, timedelta
from uuid import uuid4
from unittest.mock import Mock, patch

import jwt
from fastapi import HTTPException

from src.auth.config import AuthConfig, parse_email_list
from src.auth.dependencies import require_superuser, SUPERUSER_REQUIRED
from src.auth.jwt import verify_supabase_token, JWTError, extract_user_info
from src.auth.models import User, UserRole
from src.auth.sync import sync_user_from_supabase, resolve_role


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def auth_config():
    """Create test auth config."""
    return AuthConfig(
        supabase_url="https://test.supabase.co",
        supabase_anon_key="test-anon-key",
        supabase_jwt_secret="super-secret-jwt-key-for-testing",
        jwt_algorithm="HS256",
        jwt_audience="authenticated",
        auth_enabled=True,
        admin_emails=["admin@test.com"],
        superuser_emails=["owner@test.com"],
    )


@pytest.fixture
def plain_config():
    """Config that grants no roles by email."""
    return AuthConfig(admin_emails=[], superuser_emails=[])


@pytest.fixture
def valid_jwt_payload():
    """Create valid JWT payload."""
    return {
        "sub": str(uuid4()),
        "email": "user@test.com",
        "role": "authenticated",
        "aud": "authenticated",
        "user_metadata": {
            "full_name": "Test User",
            "avatar_url": "https://example.com/avatar.png",
        },
        "app_metadata": {
            "provider": "email",
        },
        "exp": int((datetime.utcnow() + timedelta(hours=1)).timestamp()),
        "iat": int(datetime.utcnow().timestamp()),
    }


@pytest.fixture
def create_test_token(auth_config):
    """Factory to create test JWT tokens."""
    def _create(payload: dict) -> str:
        return jwt.encode(
            payload,
            auth_config.supabase_jwt_secret,
            algorithm=auth_config.jwt_algorithm,
        )
    return _create


def _mock_db(existing_user=None):
    mock_db = Mock()
    mock_db.query.return_value.filter.return_value.first.return_value = existing_user
    return mock_db


# =============================================================================
# JWT VALIDATION TESTS
# =============================================================================

class TestJWTValidation:
    """Tests for JWT token validation."""

    def test_valid_token(self, auth_config, valid_jwt_payload, create_test_token):
        """Test that a valid token is accepted."""
        with patch("src.auth.jwt.get_auth_config", return_value=auth_config):
            token = create_test_token(valid_jwt_payload)
            payload = verify_supabase_token(token)

            assert payload["sub"] == valid_jwt_payload["sub"]
            assert payload["email"] == valid_jwt_payload["email"]

    def test_expired_token(self, auth_config, valid_jwt_payload, create_test_token):
        """Test that expired tokens are rejected."""
        valid_jwt_payload["exp"] = int((datetime.utcnow() - timedelta(hours=1)).timestamp())

        with patch("src.auth.jwt.get_auth_config", return_value=auth_config):
            token = create_test_token(valid_jwt_payload)

            with pytest.raises(JWTError, match="expired"):
                verify_supabase_token(token)

    def test_invalid_signature(self, auth_config, valid_jwt_payload):
        """Test that tokens with invalid signatures are rejected."""
        token = jwt.encode(valid_jwt_payload, "wrong-secret", algorithm="HS256")

        with patch("src.auth.jwt.get_auth_config", return_value=auth_config):
            with pytest.raises(JWTError, match="signature"):
                verify_supabase_token(token)

    def test_missing_sub_claim(self, auth_config, valid_jwt_payload, create_test_token):
        """Test that tokens without 'sub' claim are rejected."""
        del valid_jwt_payload["sub"]

        with patch("src.auth.jwt.get_auth_config", return_value=auth_config):
            token = create_test_token(valid_jwt_payload)

            with pytest.raises(JWTError, match="sub"):
                verify_supabase_token(token)

    def test_invalid_audience(self, auth_config, valid_jwt_payload, create_test_token):
        """Test that tokens with wrong audience are rejected."""
        valid_jwt_payload["aud"] = "wrong-audience"

        with patch("src.auth.jwt.get_auth_config", return_value=auth_config):
            token = create_test_token(valid_jwt_payload)

            with pytest.raises(JWTError, match="audience"):
                verify_supabase_token(token)

    def test_no_jwt_secret_configured(self):
        """Test error when JWT secret not configured."""
        config = AuthConfig(supabase_jwt_secret="")

        with patch("src.auth.jwt.get_auth_config", return_value=config):
            with pytest.raises(JWTError, match="not configured"):
                verify_supabase_token("any-token")


class TestExtractUserInfo:
    """Tests for extracting user info from JWT payload."""

    def test_extract_full_user_info(self, valid_jwt_payload):
        """Test extracting complete user info."""
        info = extract_user_info(valid_jwt_payload)

        assert info["id"] == valid_jwt_payload["sub"]
        assert info["email"] == valid_jwt_payload["email"]
        assert info["full_name"] == "Test User"
        assert info["avatar_url"] == "https://example.com/avatar.png"
        assert info["provider"] == "email"
        assert info["app_role"] is None

    def test_email_is_lowercased(self):
        """Role lookups compare lowercase addresses."""
        info = extract_user_info({"sub": "user-123", "email": "Owner@Test.COM"})

        assert info["email"] == "owner@test.com"

    def test_google_oauth_metadata(self):
        """Test extracting user info from Google OAuth payload."""
        payload = {
            "sub": "user-123",
            "email": "user@gmail.com",
            "user_metadata": {
                "name": "Google User",  # Google uses 'name' not 'full_name'
                "picture": "https://googleusercontent.com/avatar.png",
            },
            "app_metadata": {
                "provider": "google",
                "role": "superuser",
            },
        }
        info = extract_user_info(payload)

        assert info["full_name"] == "Google User"
        assert info["avatar_url"] == "https://googleusercontent.com/avatar.png"
        assert info["provider"] == "google"
        assert info["app_role"] == "superuser"


# =============================================================================
# ROLE RESOLUTION TESTS
# =============================================================================

class TestResolveRole:
    """Tests for roles granted by configuration and claims."""

    def test_superuser_email(self, auth_config):
        info = {"email": "owner@test.com"}
        assert resolve_role(info, auth_config) == UserRole.SUPERUSER

    def test_superuser_claim(self, plain_config):
        info = {"email": "someone@test.com", "app_role": "superuser"}
        assert resolve_role(info, plain_config) == UserRole.SUPERUSER

    def test_admin_email(self, auth_config):
        assert resolve_role({"email": "admin@test.com"}, auth_config) == UserRole.ADMIN

    def test_no_role(self, auth_config):
        assert resolve_role({"email": "user@test.com"}, auth_config) is None

    def test_parse_email_list(self):
        """Comma-separated environment values are split and lowercased."""
        assert parse_email_list(" A@test.com, b@test.com ,,") == ["a@test.com", "b@test.com"]
        assert parse_email_list("") == []


# =============================================================================
# USER SYNC TESTS
# =============================================================================

class TestUserSync:
    """Tests for user synchronization."""

    def test_sync_creates_new_user(self, valid_jwt_payload, plain_config):
        """Test that a new user is created on first sync."""
        mock_db = _mock_db()

        with patch("src.auth.sync.get_auth_config", return_value=plain_config):
            sync_user_from_supabase(mock_db, valid_jwt_payload)

        mock_db.add.assert_called_once()
        mock_db.commit.assert_called()
        added_user = mock_db.add.call_args[0][0]
        assert added_user.role == UserRole.USER

    def test_sync_updates_existing_user(self, valid_jwt_payload, plain_config):
        """Test that existing user is updated on subsequent sync."""
        existing_user = User(
            id=uuid4(),
            email="old@test.com",
            role=UserRole.USER,
            is_active=True,
        )
        mock_db = _mock_db(existing_user)

        with patch("src.auth.sync.get_auth_config", return_value=plain_config):
            user = sync_user_from_supabase(mock_db, valid_jwt_payload)

        assert user.email == valid_jwt_payload["email"]
        mock_db.commit.assert_called()
        mock_db.add.assert_not_called()

    def test_sync_auto_promotes_admin(self, valid_jwt_payload, auth_config):
        """Test that admin emails are auto-promoted."""
        valid_jwt_payload["email"] = "admin@test.com"
        mock_db = _mock_db()

        with patch("src.auth.sync.get_auth_config", return_value=auth_config):
            sync_user_from_supabase(mock_db, valid_jwt_payload)

        added_user = mock_db.add.call_args[0][0]
        assert added_user.role == UserRole.ADMIN

    def test_sync_creates_superuser_from_email(self, valid_jwt_payload, auth_config):
        valid_jwt_payload["email"] = "OWNER@test.com"
        mock_db = _mock_db()

        with patch("src.auth.sync.get_auth_config", return_value=auth_config):
            sync_user_from_supabase(mock_db, valid_jwt_payload)

        added_user = mock_db.add.call_args[0][0]
        assert added_user.role == UserRole.SUPERUSER

    def test_sync_promotes_existing_user_from_claim(self, valid_jwt_payload, plain_config):
        """app_metadata.role == "superuser" promotes a regular user."""
        valid_jwt_payload["app_metadata"]["role"] = "superuser"
        existing_user = User(id=uuid4(), email="user@test.com", role=UserRole.USER, is_active=True)
        mock_db = _mock_db(existing_user)

        with patch("src.auth.sync.get_auth_config", return_value=plain_config):
            user = sync_user_from_supabase(mock_db, valid_jwt_payload)

        assert user.role == UserRole.SUPERUSER

    def test_sync_promotes_admin_to_superuser(self, valid_jwt_payload, auth_config):
        """An admin listed in SUPERUSER_EMAILS becomes a superuser."""
        valid_jwt_payload["email"] = "owner@test.com"
        existing_user = User(id=uuid4(), email="owner@test.com", role=UserRole.ADMIN, is_active=True)
        mock_db = _mock_db(existing_user)

        with patch("src.auth.sync.get_auth_config", return_value=auth_config):
            user = sync_user_from_supabase(mock_db, valid_jwt_payload)

        assert user.role == UserRole.SUPERUSER

    def test_sync_keeps_superuser_listed_as_admin(self, valid_jwt_payload, auth_config):
        valid_jwt_payload["email"] = "admin@test.com"
        existing_user = User(id=uuid4(), email="admin@test.com", role=UserRole.SUPERUSER, is_active=True)
        mock_db = _mock_db(existing_user)

        with patch("src.auth.sync.get_auth_config", return_value=auth_config):
            user = sync_user_from_supabase(mock_db, valid_jwt_payload)

        assert user.role == UserRole.SUPERUSER

    def test_sync_never_demotes(self, valid_jwt_payload, plain_config):
        existing_user = User(id=uuid4(), email="user@test.com", role=UserRole.SUPERUSER, is_active=True)
        mock_db = _mock_db(existing_user)

        with patch("src.auth.sync.get_auth_config", return_value=plain_config):
            user = sync_user_from_supabase(mock_db, valid_jwt_payload)

        assert user.role == UserRole.SUPERUSER


# =============================================================================
# USER MODEL TESTS
# =============================================================================

class TestUserModel:
    """Tests for User model."""

    def test_is_admin_true(self):
        """Test is_admin returns True for admin users."""
        user = User(id=uuid4(), email="admin@test.com", role=UserRole.ADMIN, is_active=True)
        assert user.is_admin is True
        assert user.is_superuser is False

    def test_is_superuser_true(self):
        user = User(id=uuid4(), email="owner@test.com", role=UserRole.SUPERUSER, is_active=True)
        assert user.is_superuser is True
        assert user.is_admin is False

    def test_user_repr(self):
        """Test User string representation."""
        user = User(id=uuid4(), email="user@test.com", role=UserRole.USER, is_active=True)
        assert "user@test.com" in repr(user)
        assert "user" in repr(user)


# =============================================================================
# SUPER USER GATE TESTS
# =============================================================================

class TestRequireSuperuser:
    """Tests for the Super User dependency."""

    @pytest.mark.asyncio
    async def test_superuser_passes(self):
        user = User(id=uuid4(), email="owner@test.com", role=UserRole.SUPERUSER, is_active=True)
        assert await require_superuser(current_user=user) is user

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [UserRole.USER, UserRole.ADMIN])
    async def test_other_roles_rejected(self, role):
        """Admins manage users but cannot run analyses."""
        user = User(id=uuid4(), email="user@test.com", role=role, is_active=True)

        with pytest.raises(HTTPException) as exc_info:
            await require_superuser(current_user=user)

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == SUPERUSER_REQUIRED


# =============================================================================
# AUTH CONFIG TESTS
# =============================================================================

class TestAuthConfig:
    """Tests for auth configuration."""

    def test_is_configured_true(self, auth_config):
        """Test is_configured returns True when properly configured."""
        assert auth_config.is_configured is True

    def test_is_configured_false_missing_url(self):
        """Test is_configured returns False when URL missing."""
        config = AuthConfig(supabase_url="", supabase_jwt_secret="secret")
        assert config.is_configured is False

    def test_is_configured_false_missing_secret(self):
        """Test is_configured returns False when secret missing."""
        config = AuthConfig(supabase_url="https://test.supabase.co", supabase_jwt_secret="")
        assert config.is_configured is False

    def test_supabase_project_ref(self, auth_config):
        """Test extracting project ref from URL."""
        assert auth_config.supabase_project_ref == "test"

    def test_supabase_project_ref_none(self):
        """Test project ref is None when URL not set."""
        config = AuthConfig(supabase_url="")
        assert config.supabase_project_ref is None

    def test_email_lists_from_string(self):
        config = AuthConfig(superuser_emails="Owner@test.com,second@test.com")
        assert config.superuser_emails == ["owner@test.com", "second@test.com"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
