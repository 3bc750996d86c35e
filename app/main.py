# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Academy Connect API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.exceptions import (
    AcademyConnectException,
    academy_connect_exception_handler,
    validation_exception_handler,
)
from app.routers import chat, health, identity
from app.auth import routes as auth_routes
from app.websocket import CHAT_EVENTS_CHANNEL
from app.websocket import routes as websocket_routes
from app.websocket.manager import room_manager, unread_manager
from core.models.chat import ChatEventType
from core.services.message_service import MessageService

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Global state for the Redis listener task
_redis_listener_task = None
_shutdown_event = None

# Read receipts in flight; held so they are not garbage collected mid-run
_receipt_tasks: set[asyncio.Task] = set()


def _issue_read_receipt(room_id: str, message_id: str) -> asyncio.Task:
    """Mark a delivered message read without holding up event delivery."""
    task = asyncio.create_task(
        asyncio.to_thread(MessageService.mark_message_read, room_id, message_id)
    )
    _receipt_tasks.add(task)
    task.add_done_callback(_receipt_tasks.discard)
    return task


async def dispatch_chat_event(event: dict[str, Any]) -> asyncio.Task | None:
    """
    Deliver one chat event to this process's sockets.

    - message_inserted: append to every view of the room; one read receipt
      when a viewer other than the sender received it
    - messages_read: update read flags in every view of the room
    - any event: recount the unread indicator for every subscriber

    Returns:
        The read receipt task, if one was issued
    """
    room_id = event.get("room_id")
    event_type = event.get("type")
    receipt = None

    if event_type == ChatEventType.MESSAGE_INSERTED.value:
        message = event.get("message") or {}
        if room_id and message.get("id"):
            if await room_manager.deliver_message(room_id, message):
                receipt = _issue_read_receipt(room_id, message["id"])

    elif event_type == ChatEventType.MESSAGES_READ.value:
        if room_id:
            await room_manager.deliver_read(
                room_id,
                reader_id=event.get("reader_id"),
                message_ids=event.get("message_ids"),
            )

    else:
        logger.debug(f"Ignoring unknown chat event type: {event_type}")

    await unread_manager.refresh_all()
    return receipt


async def redis_pubsub_listener():
    """
    Background task that listens to Redis pub/sub and delivers to WebSockets.

    Every API process runs one listener, so a message written through any
    process reaches sockets held by all of them.
    """
    import redis.asyncio as aioredis

    logger.info("Starting Redis pub/sub listener for chat events")

    redis_client = None
    pubsub = None
    try:
        redis_client = aioredis.from_url(settings.REDIS_URL)
        pubsub = redis_client.pubsub()
        await pubsub.subscribe(CHAT_EVENTS_CHANNEL)

        async for message in pubsub.listen():
            if _shutdown_event and _shutdown_event.is_set():
                break

            if message["type"] == "message":
                try:
                    await dispatch_chat_event(json.loads(message["data"]))
                except json.JSONDecodeError as e:
                    logger.warning(f"Invalid JSON in Redis message: {e}")
                except Exception as e:
                    logger.error(f"Error processing chat event: {e}")

    except asyncio.CancelledError:
        logger.info("Redis pub/sub listener cancelled")
    except Exception as e:
        logger.error(f"Redis pub/sub listener error: {e}")
    finally:
        try:
            if pubsub is not None:
                await pubsub.unsubscribe(CHAT_EVENTS_CHANNEL)
            if redis_client is not None:
                await redis_client.close()
        except Exception as e:
            logger.debug(f"Error closing Redis listener: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    - Startup: log config, start the chat event listener
    - Shutdown: stop the listener
    """
    global _redis_listener_task, _shutdown_event

    logger.info(f"Starting Academy Connect API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    logger.info(f"Phone identity verification mode: {settings.FIREBASE_VERIFY_MODE}")

    _shutdown_event = asyncio.Event()
    _redis_listener_task = asyncio.create_task(redis_pubsub_listener())

    yield

    logger.info("Shutting down Academy Connect API")

    if _shutdown_event:
        _shutdown_event.set()
    if _redis_listener_task:
        _redis_listener_task.cancel()
        try:
            await _redis_listener_task
        except asyncio.CancelledError:
            pass


# Create FastAPI application
app = FastAPI(
    title="Academy Connect API",
    description="""
## Phone Identity Bridge and Parent <-> Academy Chat

### Identity Bridge

Clients authenticate a phone number with the phone identity provider, then
exchange the resulting token here:

- `POST /firebase-signup` `{"idToken": "...", "role": "parent"}`
- `POST /firebase-login` `{"idToken": "..."}`

Both are also served under `/functions/v1/`.

### Chat

- One room per (academy, parent, staff member)
- Per-caller send gate: owners read rooms assigned to other staff,
  parents wait for an instructor's first reply
- Realtime delivery over `ws://host/ws/rooms/{room_id}?token=...`
- Global unread indicator over `ws://host/ws/unread?token=...`
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Identity",
            "description": "Phone identity bridge (signup and login)",
        },
        {
            "name": "Auth",
            "description": "Current user and token checks",
        },
        {
            "name": "Chat",
            "description": "Rooms, messages and the unread indicator",
        },
        {
            "name": "WebSocket",
            "description": "Realtime chat updates",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(AcademyConnectException)
async def handle_academy_connect_exception(request: Request, exc: AcademyConnectException):
    """Handle custom Academy Connect exceptions."""
    return await academy_connect_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    """Handle request body and parameter validation errors."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Phone identity bridge
app.include_router(
    identity.router,
    tags=["Identity"]
)

# Same endpoints at the hosted functions path
app.include_router(
    identity.router,
    prefix="/functions/v1",
    tags=["Identity"],
    include_in_schema=False,
)

# Authentication endpoints
app.include_router(
    auth_routes.router,
    prefix="/api/v1",
    tags=["Auth"]
)

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

# Chat endpoints
app.include_router(
    chat.router,
    prefix="/api/v1/chat",
    tags=["Chat"]
)

# WebSocket endpoints (Real-time updates)
app.include_router(
    websocket_routes.router,
    tags=["WebSocket"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Academy Connect API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
