# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# /health       process is up (plus whether push delivery is configured)
# /health/live  liveness probe
# /health/ready database, logo bucket and Redis reachability
# =============================================================================

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from app.config import settings
from app.websocket import broadcast
from core.services.storage_service import VENDOR_LOGO_BUCKET
from lib.supabase_client import SupabaseClient
from lib.utils import utc_now

router = APIRouter()

API_VERSION = "1.0.0"

HEALTHY = "healthy"


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    environment: str
    version: str
    push_enabled: bool


class ChecksResponse(BaseModel):
    """Result of each dependency probe: "healthy" or "unhealthy: <reason>"."""
    database: str
    storage: str
    redis: str


class ReadinessResponse(BaseModel):
    status: str
    checks: ChecksResponse
    timestamp: str


class LivenessResponse(BaseModel):
    status: str
    timestamp: str


# =============================================================================
# Probes
# =============================================================================

def _probe(check) -> str:
    try:
        check()
        return HEALTHY
    except Exception as e:
        return f"unhealthy: {str(e)[:50]}"


def _check_database() -> None:
    SupabaseClient.get_client().table("profiles").select("id").limit(1).execute()


def _check_storage() -> None:
    buckets = SupabaseClient.get_client().storage.list_buckets()
    names = {getattr(b, "name", None) for b in buckets or []}
    if VENDOR_LOGO_BUCKET not in names:
        raise LookupError(f"bucket {VENDOR_LOGO_BUCKET} missing")


def _check_redis() -> None:
    broadcast.get_redis_client().ping()


def run_checks() -> ChecksResponse:
    return ChecksResponse(
        database=_probe(_check_database),
        storage=_probe(_check_storage),
        redis=_probe(_check_redis),
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health status for load balancers and monitoring.
    """
    return HealthResponse(
        status=HEALTHY,
        timestamp=utc_now().isoformat(),
        environment=settings.ENVIRONMENT,
        version=API_VERSION,
        push_enabled=settings.push_configured,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check():
    """
    Readiness check.

    Reports "degraded" when the database, the vendor logo bucket or Redis
    (Celery broker and realtime fan-out) can't be reached.
    """
    checks = await run_in_threadpool(run_checks)
    ready = all(value == HEALTHY for value in checks.model_dump().values())

    return ReadinessResponse(
        status="ready" if ready else "degraded",
        checks=checks,
        timestamp=utc_now().isoformat(),
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check():
    """Liveness probe; never touches dependencies."""
    return LivenessResponse(
        status="alive",
        timestamp=utc_now().isoformat(),
    )
