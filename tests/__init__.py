# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Academy Connect API:
# - conftest.py: in-memory Supabase fake, Redis publisher mock, token helper
# - test_phone.py / test_firebase_verifier.py / test_identity_*.py:
#   phone identity bridge
# - test_chat_access.py / test_room_*.py / test_message_service.py:
#   send gate, rooms and messages
# - test_websocket_manager.py / test_chat_routes.py: realtime and HTTP API
#
# Run tests with: pytest
# =============================================================================
