# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the chat and identity logic:
# - models/: Pydantic schemas for data validation
# - services/: identity bridge, actor resolution, send gate, rooms,
#   messages, unread indicator
#
# Code in this package does not import FastAPI. Persistence goes through
# lib.supabase_client and realtime fan-out through app.websocket.broadcast.
# =============================================================================
