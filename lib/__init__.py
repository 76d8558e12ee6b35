# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Supabase wrapper (client singleton, lookups, counts)
# - fcm.py: Firebase Cloud Messaging HTTP v1 client
# - utils.py: Shared utilities (error handling, UUID normalization, time)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.fcm import FcmClient, FcmError, build_data_payload, get_fcm_client
from lib.utils import ApplicationError, normalize_uuid, utc_now

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Push
    "FcmClient",
    "FcmError",
    "build_data_payload",
    "get_fcm_client",
    # Utils
    "ApplicationError",
    "normalize_uuid",
    "utc_now",
]
