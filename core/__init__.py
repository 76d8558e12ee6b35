# =============================================================================
# core/ - Domain Models and Services
# =============================================================================
# - models/: Pydantic request and response schemas
# - services/: Workflows over Supabase tables, storage and RPCs
#
# Services raise app.exceptions errors and never build HTTP responses.
# =============================================================================
