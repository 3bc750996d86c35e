# =============================================================================
# tests/test_identity_routes.py - Identity Bridge Endpoint Tests
# =============================================================================
# Exercises the HTTP contract: status codes, {"error", "code"} bodies and
# CORS headers on every response.
# =============================================================================

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.main import app
from core.models.identity import ExternalIdentity

VERIFY = "core.services.identity_service.verify_id_token"

client = TestClient(app, raise_server_exceptions=False)


def verified(phone="+821012345678"):
    return AsyncMock(return_value=ExternalIdentity(provider_user_id="fb-uid-1", phone_number=phone))


def assert_cors(response):
    assert response.headers["access-control-allow-origin"] == "*"
    assert "content-type" in response.headers["access-control-allow-headers"]


class TestSignupEndpoint:

    def test_signup_then_duplicate(self, fake_db):
        with patch(VERIFY, verified()):
            first = client.post("/firebase-signup", json={"idToken": "t", "role": "parent"})
            second = client.post("/firebase-signup", json={"idToken": "t", "role": "parent"})

        assert first.status_code == 200
        assert first.json() == {"ok": True}
        assert_cors(first)

        assert second.status_code == 409
        assert second.json()["code"] == "PHONE_ALREADY_REGISTERED"
        assert "error" in second.json()
        assert_cors(second)

    def test_functions_path_alias(self, fake_db):
        with patch(VERIFY, verified()):
            response = client.post(
                "/functions/v1/firebase-signup", json={"idToken": "t", "role": "student"}
            )

        assert response.status_code == 200

    def test_missing_role(self, fake_db):
        response = client.post("/firebase-signup", json={"idToken": "t"})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"
        assert_cors(response)

    def test_malformed_json(self, fake_db):
        response = client.post(
            "/firebase-signup",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert_cors(response)

    def test_invalid_token(self, fake_db):
        with patch(VERIFY, AsyncMock(return_value=None)):
            response = client.post("/firebase-signup", json={"idToken": "t", "role": "parent"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"
        assert_cors(response)

    def test_unexpected_error_is_generic_500(self, fake_db):
        with patch(VERIFY, AsyncMock(side_effect=RuntimeError("secret detail"))):
            response = client.post("/firebase-signup", json={"idToken": "t", "role": "parent"})

        assert response.status_code == 500
        assert "secret detail" not in response.text
        assert_cors(response)

    def test_preflight(self):
        response = client.options("/firebase-signup")

        assert response.status_code == 200
        assert response.content == b""
        assert_cors(response)


class TestLoginEndpoint:

    def test_login_registered(self, fake_db):
        fake_db.add_user(role="parent", phone="01012345678")

        with patch(VERIFY, verified()):
            response = client.post("/firebase-login", json={"idToken": "t"})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert_cors(response)

    def test_login_unregistered(self, fake_db):
        with patch(VERIFY, verified()):
            response = client.post("/firebase-login", json={"idToken": "t"})

        assert response.status_code == 404
        assert response.json()["code"] == "PHONE_NOT_REGISTERED"
        assert_cors(response)

    def test_login_without_phone(self, fake_db):
        with patch(VERIFY, verified(phone=None)):
            response = client.post("/functions/v1/firebase-login", json={"idToken": "t"})

        assert response.status_code == 400

    def test_preflight(self):
        response = client.options("/functions/v1/firebase-login")

        assert response.status_code == 200
        assert_cors(response)

    def test_other_methods_rejected(self):
        response = client.get("/firebase-login")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert_cors(response)
