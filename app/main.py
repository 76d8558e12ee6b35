# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the MotorHub API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import asyncio
import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.websocket import websocket_manager, WEBSOCKET_CHANNEL
from app.exceptions import (
    MotorHubException,
    motorhub_exception_handler,
    validation_exception_handler,
)
from app.routers import (
    admin,
    comments,
    health,
    home,
    notifications,
    push,
    saved_posts,
    sim_racing,
    social,
    vendors,
)
from app.auth import routes as auth_routes
from app.websocket import routes as websocket_routes
from lib.supabase_client import SupabaseClientError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Global flag for Redis listener task
_redis_listener_task = None
_shutdown_event = None


async def redis_pubsub_listener():
    """
    Background task that listens to Redis pub/sub and broadcasts to WebSockets.

    Services and Celery workers publish `{user_id, type, data}` events; each
    one is forwarded to that user's open sockets with `user_id` removed.
    """
    import redis.asyncio as aioredis

    logger.info("Starting Redis pub/sub listener for WebSocket broadcasts")

    redis_client = None
    pubsub = None
    try:
        redis_client = aioredis.from_url(settings.REDIS_URL)
        pubsub = redis_client.pubsub()
        await pubsub.subscribe(WEBSOCKET_CHANNEL)

        async for message in pubsub.listen():
            if _shutdown_event and _shutdown_event.is_set():
                break

            if message["type"] == "message":
                try:
                    data = json.loads(message["data"])
                    user_id = data.pop("user_id", None)

                    if user_id:
                        await websocket_manager.broadcast(user_id, data)
                        logger.debug(f"Broadcast {data.get('type')} to user {user_id}")

                except json.JSONDecodeError as e:
                    logger.warning(f"Invalid JSON in Redis message: {e}")
                except Exception as e:
                    logger.error(f"Error processing Redis message: {e}")

    except asyncio.CancelledError:
        logger.info("Redis pub/sub listener cancelled")
    except Exception as e:
        logger.error(f"Redis pub/sub listener error: {e}")
    finally:
        try:
            if pubsub is not None:
                await pubsub.unsubscribe(WEBSOCKET_CHANNEL)
            if redis_client is not None:
                await redis_client.close()
        except Exception as e:
            logger.debug(f"Redis listener cleanup failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    - Startup: log config, start the Redis listener
    - Shutdown: stop the listener
    """
    global _redis_listener_task, _shutdown_event

    # Startup
    logger.info(f"Starting MotorHub API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    if not settings.push_configured:
        logger.warning("FCM credentials missing; push delivery is disabled")

    _shutdown_event = asyncio.Event()
    _redis_listener_task = asyncio.create_task(redis_pubsub_listener())

    yield

    # Shutdown
    logger.info("Shutting down MotorHub API")

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
    title="MotorHub API",
    description="""
## Automotive Community and Marketplace API

Backend for the MotorHub web and mobile apps.

### Areas

| Area | What it covers |
|------|----------------|
| **Home** | Services, events, vendors, stats and personalised product feeds |
| **Social** | Comments, threaded replies, likes and saved posts |
| **Notifications** | In-app notifications, preferences and reminder batches |
| **Push** | FCM device subscriptions and delivery |
| **Vendors** | Two-step vendor onboarding and change requests |
| **Admin** | Vendor review |
| **Sim Racing** | Teams, league registration and standings |

Authenticated endpoints expect a Supabase access token:

```bash
curl http://localhost:8000/api/notifications \\
  -H "Authorization: Bearer <access_token>"
```
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Verify tokens and read the current user"},
        {"name": "Home", "description": "Home page sections"},
        {"name": "Comments", "description": "Post comments and reply threads"},
        {"name": "Saved Posts", "description": "Bookmark posts"},
        {"name": "Social", "description": "Post likes"},
        {"name": "Notifications", "description": "In-app notifications and preferences"},
        {"name": "Push", "description": "Push subscriptions and delivery"},
        {"name": "Vendors", "description": "Vendor registration"},
        {"name": "Admin", "description": "Vendor review for admins"},
        {"name": "Sim Racing", "description": "Teams and leagues"},
        {"name": "WebSocket", "description": "Real-time notification stream"},
        {"name": "Health", "description": "API health and readiness checks"},
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
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

@app.exception_handler(MotorHubException)
async def handle_motorhub_exception(request: Request, exc: MotorHubException):
    """Handle custom MotorHub exceptions."""
    return await motorhub_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    """Handle request body and query validation errors."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(SupabaseClientError)
async def handle_supabase_error(request: Request, exc: SupabaseClientError):
    """Database errors that services didn't translate."""
    logger.error(f"Supabase error on {request.url.path}: {exc}")
    content = {"detail": exc.message, "code": exc.code}
    if exc.suggestion:
        content["suggestion"] = exc.suggestion
    return JSONResponse(status_code=500, content=content)


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

# Authentication endpoints (router carries the /auth prefix)
app.include_router(auth_routes.router, prefix="/api")

app.include_router(health.router, prefix="/api", tags=["Health"])

app.include_router(home.router, prefix="/api/home", tags=["Home"])

app.include_router(comments.router, prefix="/api/comments", tags=["Comments"])

app.include_router(saved_posts.router, prefix="/api/saved-posts", tags=["Saved Posts"])

app.include_router(social.router, prefix="/api/social", tags=["Social"])

app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])

app.include_router(push.router, prefix="/api/push", tags=["Push"])

app.include_router(vendors.router, prefix="/api/vendor", tags=["Vendors"])

app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])

app.include_router(sim_racing.router, prefix="/api/sim-racing", tags=["Sim Racing"])

# WebSocket endpoints (Real-time updates)
app.include_router(websocket_routes.router, tags=["WebSocket"])


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "MotorHub API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }
