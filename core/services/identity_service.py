# =============================================================================
# core/services/identity_service.py - Phone Identity Bridge
# =============================================================================
# Reconciles the phone identity provider (Firebase) with Supabase accounts.
#
# signup: verified phone -> new pre-confirmed auth user + user_roles row
# login:  verified phone -> confirms an account exists for the number
#
# Neither operation issues a Supabase session; the client completes sign-in
# through Supabase itself once the bridge confirms the identity.
# =============================================================================

import logging

from app.config import settings
from app.exceptions import (
    BridgeInternalError,
    InvalidBridgeRequestError,
    InvalidTokenError,
    PhoneAlreadyRegisteredError,
    PhoneNotFoundInTokenError,
    PhoneNotRegisteredError,
)
from core.models.identity import AuthRole, BridgeResponse, ExternalIdentity
from lib.firebase_verifier import verify_id_token
from lib.phone import normalize_phone, phone_lookup_candidates
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)


def synthetic_email(provider_user_id: str, domain: str | None = None) -> str:
    """
    Build the account email for a phone-only identity.

    Deterministic per provider user id, so a second signup for the same
    identity collides on the email as well as on the phone number.
    """
    return f"{provider_user_id.replace('-', '')}@{domain or settings.SYNTHETIC_EMAIL_DOMAIN}"


class IdentityService:
    """
    Service for the signup/login bridge.

    Example:
        await IdentityService.signup(id_token, "parent")  # BridgeResponse(ok=True)
        await IdentityService.login(id_token)             # BridgeResponse(ok=True)
    """

    @staticmethod
    def _require_token(id_token: object) -> str:
        if not id_token or not isinstance(id_token, str):
            raise InvalidBridgeRequestError("idToken is required")
        return id_token

    @staticmethod
    async def _verified_phone(id_token: str) -> tuple[ExternalIdentity, str]:
        """Verify the token and return the identity with its normalized phone."""
        identity = await verify_id_token(id_token)
        if identity is None:
            raise InvalidTokenError()

        if not identity.phone_number:
            raise PhoneNotFoundInTokenError()

        phone = normalize_phone(identity.phone_number, settings.PHONE_COUNTRY_CODE)
        return identity, phone

    @staticmethod
    async def signup(id_token: object, role: object) -> BridgeResponse:
        """
        Register a new account for a verified phone number.

        Args:
            id_token: Firebase ID token
            role: One of parent, student, admin

        Returns:
            BridgeResponse(ok=True)

        Raises:
            InvalidBridgeRequestError: 400, missing token or bad role
            InvalidTokenError: 401, token did not verify
            PhoneNotFoundInTokenError: 400, identity has no phone number
            PhoneAlreadyRegisteredError: 409, phone already has an account
            BridgeInternalError: 500, anything unexpected
        """
        token = IdentityService._require_token(id_token)
        if not isinstance(role, str) or role not in AuthRole.values():
            raise InvalidBridgeRequestError(
                f"A valid role is required ({', '.join(AuthRole.values())})"
            )

        identity, phone = await IdentityService._verified_phone(token)

        try:
            if SupabaseClient.find_profile_by_phone(phone):
                logger.info("Signup rejected: phone already registered")
                raise PhoneAlreadyRegisteredError()

            user_id = SupabaseClient.create_auth_user(
                email=synthetic_email(identity.provider_user_id),
                user_metadata={
                    "phone": phone,
                    "firebase_uid": identity.provider_user_id,
                    "role": role,
                },
            )
            SupabaseClient.upsert_user_role(user_id, role)

        except PhoneAlreadyRegisteredError:
            raise
        except SupabaseClientError as e:
            if e.code == "USER_ALREADY_EXISTS":
                logger.info("Signup rejected: auth user already exists for this identity")
                raise PhoneAlreadyRegisteredError()
            logger.error(f"Signup failed: {e}")
            raise BridgeInternalError()
        except Exception:
            logger.exception("Signup failed unexpectedly")
            raise BridgeInternalError()

        logger.info(f"Signed up user {user_id} with role {role}")
        return BridgeResponse(ok=True)

    @staticmethod
    async def login(id_token: object) -> BridgeResponse:
        """
        Confirm that a verified phone number belongs to an account.

        The international form is tried first, then the domestic form, so
        rows stored under either convention are found.

        Raises:
            InvalidBridgeRequestError: 400, missing token
            InvalidTokenError: 401, token did not verify
            PhoneNotFoundInTokenError: 400, identity has no phone number
            PhoneNotRegisteredError: 404, no account for the number
            BridgeInternalError: 500, anything unexpected
        """
        token = IdentityService._require_token(id_token)
        _, phone = await IdentityService._verified_phone(token)

        try:
            profile = None
            for candidate in phone_lookup_candidates(phone, settings.PHONE_COUNTRY_CODE):
                profile = SupabaseClient.find_profile_by_phone(candidate)
                if profile:
                    break

        except SupabaseClientError as e:
            logger.error(f"Login lookup failed: {e}")
            raise BridgeInternalError()
        except Exception:
            logger.exception("Login lookup failed unexpectedly")
            raise BridgeInternalError()

        if not profile:
            raise PhoneNotRegisteredError()

        logger.info(f"Confirmed phone login for profile {profile.get('id')}")
        return BridgeResponse(ok=True)
