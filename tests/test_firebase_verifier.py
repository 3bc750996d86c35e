# =============================================================================
# tests/test_firebase_verifier.py - Phone Token Verification Tests
# =============================================================================
# The lookup endpoint is replaced with httpx.MockTransport; the Admin SDK
# with patches on lib.firebase_verifier.
# =============================================================================

import asyncio
import json
import threading
from unittest.mock import patch

import httpx
import pytest

from app.config import settings
from lib import firebase_verifier
from lib.firebase_verifier import admin_verify_id_token, lookup_id_token, verify_id_token


def _lookup(handler, token="token-abc"):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await lookup_id_token(token, client=client)
    return asyncio.run(run())


class TestLookupIdToken:
    """Tests for the accounts:lookup verification path."""

    def test_valid_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.url.params.get("key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "users": [{"localId": "fb-uid-1", "phoneNumber": "+821012345678"}]
            })

        identity = _lookup(handler)

        assert identity.provider_user_id == "fb-uid-1"
        assert identity.phone_number == "+821012345678"
        assert identity.email is None
        assert seen["key"] == settings.FIREBASE_API_KEY
        assert seen["body"] == {"idToken": "token-abc"}

    def test_provider_rejects_token(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"message": "INVALID_ID_TOKEN"}})

        assert _lookup(handler) is None

    def test_no_users_in_response(self):
        def handler(request):
            return httpx.Response(200, json={"kind": "identitytoolkit#GetAccountInfoResponse"})

        assert _lookup(handler) is None

    def test_malformed_json(self):
        def handler(request):
            return httpx.Response(200, content=b"not json")

        assert _lookup(handler) is None

    def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        assert _lookup(handler) is None

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "FIREBASE_API_KEY", "")

        def handler(request):
            raise AssertionError("should not be called")

        assert _lookup(handler) is None


class TestAdminVerify:
    """Tests for the Admin SDK verification path."""

    def test_claims_mapped_to_identity(self):
        claims = {"uid": "fb-uid-2", "phone_number": "+821099998888"}
        with patch.object(firebase_verifier, "_get_firebase_app"), \
                patch.object(firebase_verifier.firebase_auth, "verify_id_token", return_value=claims):
            identity = admin_verify_id_token("token")

        assert identity.provider_user_id == "fb-uid-2"
        assert identity.phone_number == "+821099998888"

    def test_sdk_error_returns_none(self):
        with patch.object(firebase_verifier, "_get_firebase_app"), \
                patch.object(
                    firebase_verifier.firebase_auth, "verify_id_token",
                    side_effect=ValueError("Token expired"),
                ):
            assert admin_verify_id_token("token") is None


class TestVerifyIdToken:
    """Tests for mode dispatch."""

    def test_empty_token(self):
        assert asyncio.run(verify_id_token("")) is None

    def test_admin_mode(self, monkeypatch):
        monkeypatch.setattr(settings, "FIREBASE_VERIFY_MODE", "admin")
        with patch.object(firebase_verifier, "admin_verify_id_token", return_value=None) as admin:
            assert asyncio.run(verify_id_token("token")) is None
        admin.assert_called_once_with("token")

    def test_admin_mode_runs_off_the_event_loop(self, monkeypatch):
        monkeypatch.setattr(settings, "FIREBASE_VERIFY_MODE", "admin")
        callers = []

        def blocking_verify(token):
            callers.append(threading.get_ident())
            return None

        with patch.object(firebase_verifier, "admin_verify_id_token", side_effect=blocking_verify):
            asyncio.run(verify_id_token("token"))

        assert callers and callers[0] != threading.get_ident()

    def test_lookup_mode(self, monkeypatch):
        monkeypatch.setattr(settings, "FIREBASE_VERIFY_MODE", "lookup")

        async def fake_lookup(token):
            return "identity"

        with patch.object(firebase_verifier, "lookup_id_token", side_effect=fake_lookup):
            assert asyncio.run(verify_id_token("token")) == "identity"
