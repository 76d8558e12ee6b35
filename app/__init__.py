# =============================================================================
# app/ - MotorHub HTTP Service
# =============================================================================
# - main.py: FastAPI app, lifespan (Redis listener), error handlers
# - config.py: Settings loaded from the environment
# - auth/: Supabase token verification and admin / internal gates
# - routers/: One router per feature, mounted under /api
# - websocket/: Realtime notification delivery
#
# Route handlers stay thin: validation and HTTP shape live here, the
# workflows live in core/services.
# =============================================================================
