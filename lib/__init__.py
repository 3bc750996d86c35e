# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - firebase_verifier.py: Phone identity token verification
# - bridge_client.py: HTTP client for the identity bridge endpoints
# - phone.py: Phone number normalization
# - utils.py: Shared utilities (error base class, constraint checks)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.phone import normalize_phone, phone_lookup_candidates, to_domestic
from lib.utils import ApplicationError, is_unique_violation

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Phone
    "normalize_phone",
    "phone_lookup_candidates",
    "to_domestic",
    # Utils
    "ApplicationError",
    "is_unique_violation",
]
