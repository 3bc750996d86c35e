# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - identity.py: Phone identity bridge (signup and login)
# - chat.py: Chat rooms, messages and the unread indicator
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import identity
from . import chat

__all__ = [
    "health",
    "identity",
    "chat",
]
