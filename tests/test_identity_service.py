# =============================================================================
# tests/test_identity_service.py - Phone Identity Bridge Service Tests
# =============================================================================
# Token verification is patched; Supabase is the in-memory FakeSupabase.
# =============================================================================

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from app.exceptions import (
    BridgeInternalError,
    InvalidBridgeRequestError,
    InvalidTokenError,
    PhoneAlreadyRegisteredError,
    PhoneNotFoundInTokenError,
    PhoneNotRegisteredError,
)
from core.models.identity import ExternalIdentity
from core.services.identity_service import IdentityService, synthetic_email

VERIFY = "core.services.identity_service.verify_id_token"


def identity(uid="fb-uid-1", phone="+82 10-1234-5678"):
    return ExternalIdentity(provider_user_id=uid, phone_number=phone)


class TestSyntheticEmail:

    def test_dashes_removed(self):
        assert synthetic_email("ab-cd-ef") == "abcdef@firebase.phone"

    def test_custom_domain(self):
        assert synthetic_email("uid", domain="example.org") == "uid@example.org"


class TestSignup:
    """Tests for IdentityService.signup."""

    def test_creates_user_and_role(self, fake_db):
        with patch(VERIFY, AsyncMock(return_value=identity())):
            result = asyncio.run(IdentityService.signup("token", "parent"))

        assert result.ok is True

        created = fake_db.auth.admin.created
        assert len(created) == 1
        assert created[0]["email"] == "fbuid1@firebase.phone"
        assert created[0]["email_confirm"] is True
        assert created[0]["user_metadata"] == {
            "phone": "+821012345678",
            "firebase_uid": "fb-uid-1",
            "role": "parent",
        }
        assert fake_db.rows("user_roles", user_id=created[0]["id"])[0]["role"] == "parent"

    def test_second_signup_same_phone_is_conflict(self, fake_db):
        with patch(VERIFY, AsyncMock(return_value=identity())):
            asyncio.run(IdentityService.signup("token", "parent"))

        # Different provider account, same phone number
        with patch(VERIFY, AsyncMock(return_value=identity(uid="fb-uid-2"))):
            with pytest.raises(PhoneAlreadyRegisteredError) as exc_info:
                asyncio.run(IdentityService.signup("token", "student"))

        assert exc_info.value.status_code == 409
        assert len(fake_db.auth.admin.created) == 1

    def test_auth_user_already_exists_is_conflict(self, fake_db):
        fake_db.failures[("auth", "create_user")] = Exception("User already registered")

        with patch(VERIFY, AsyncMock(return_value=identity())):
            with pytest.raises(PhoneAlreadyRegisteredError):
                asyncio.run(IdentityService.signup("token", "parent"))

    @pytest.mark.parametrize("token,role", [
        (None, "parent"),
        ("", "parent"),
        (123, "parent"),
        ("token", None),
        ("token", "teacher"),
    ])
    def test_bad_request(self, fake_db, token, role):
        with patch(VERIFY, AsyncMock(return_value=identity())) as verify:
            with pytest.raises(InvalidBridgeRequestError) as exc_info:
                asyncio.run(IdentityService.signup(token, role))

        assert exc_info.value.status_code == 400
        verify.assert_not_called()

    def test_invalid_token(self, fake_db):
        with patch(VERIFY, AsyncMock(return_value=None)):
            with pytest.raises(InvalidTokenError) as exc_info:
                asyncio.run(IdentityService.signup("token", "parent"))

        assert exc_info.value.status_code == 401
        assert fake_db.auth.admin.created == []

    def test_token_without_phone(self, fake_db):
        with patch(VERIFY, AsyncMock(return_value=identity(phone=None))):
            with pytest.raises(PhoneNotFoundInTokenError):
                asyncio.run(IdentityService.signup("token", "parent"))

    def test_backend_failure_is_internal_error(self, fake_db):
        fake_db.failures[("user_roles", "upsert")] = Exception("connection reset")

        with patch(VERIFY, AsyncMock(return_value=identity())):
            with pytest.raises(BridgeInternalError) as exc_info:
                asyncio.run(IdentityService.signup("token", "parent"))

        assert exc_info.value.status_code == 500
        assert "connection reset" not in exc_info.value.message


class TestLogin:
    """Tests for IdentityService.login."""

    def test_registered_international_form(self, fake_db):
        fake_db.add_user(role="parent", phone="+821012345678")

        with patch(VERIFY, AsyncMock(return_value=identity())):
            assert asyncio.run(IdentityService.login("token")).ok is True

    def test_registered_domestic_form(self, fake_db):
        fake_db.add_user(role="parent", phone="01012345678")

        with patch(VERIFY, AsyncMock(return_value=identity())):
            assert asyncio.run(IdentityService.login("token")).ok is True

    def test_signup_then_login(self, fake_db):
        with patch(VERIFY, AsyncMock(return_value=identity())):
            asyncio.run(IdentityService.signup("token", "parent"))
            assert asyncio.run(IdentityService.login("token")).ok is True

    def test_unregistered(self, fake_db):
        with patch(VERIFY, AsyncMock(return_value=identity())):
            with pytest.raises(PhoneNotRegisteredError) as exc_info:
                asyncio.run(IdentityService.login("token"))

        assert exc_info.value.status_code == 404

    def test_missing_token(self, fake_db):
        with pytest.raises(InvalidBridgeRequestError):
            asyncio.run(IdentityService.login(None))

    def test_lookup_failure(self, fake_db):
        fake_db.failures[("profiles", "select")] = Exception("timeout")

        with patch(VERIFY, AsyncMock(return_value=identity())):
            with pytest.raises(BridgeInternalError):
                asyncio.run(IdentityService.login("token"))
