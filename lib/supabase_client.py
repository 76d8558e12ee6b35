# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides the lookups shared by several services:
# - Profiles and notification preferences
# - Exact row counts
# - Edge Function invocation (best-effort side effects)
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   profile = SupabaseClient.fetch_profile(user_id)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings
from lib.utils import normalize_uuid

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code for ".single()" matching no rows
NO_ROWS_CODE = "PGRST116"

# Postgres unique_violation
UNIQUE_VIOLATION_CODE = "23505"


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Carries a code and, where possible, a suggestion on how to fix it.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


def is_no_rows_error(error: Exception) -> bool:
    """True when a PostgREST error means 'no rows matched'."""
    return NO_ROWS_CODE in str(error)


def is_unique_violation(error: Exception) -> bool:
    """True when an insert failed on a unique constraint."""
    code = getattr(error, "code", None)
    if code == UNIQUE_VIOLATION_CODE:
        return True
    text = str(error).lower()
    return UNIQUE_VIOLATION_CODE in text or "duplicate" in text or "unique" in text


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        prefs = SupabaseClient.fetch_notification_preferences(user_id)
        members = SupabaseClient.count("profiles")
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        Every route that acts on behalf of a user filters by the user id
        taken from the verified JWT.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def _normalize_uuid(cls, uuid_value: str | UUID) -> str:
        """Convert UUID to string for queries."""
        return normalize_uuid(uuid_value)

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_profile(cls, user_id: str | UUID) -> dict[str, Any] | None:
        """
        Fetch a profile row by user ID.

        Returns:
            Profile dict, or None if the user has no profile row

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("profiles")
                .select("*")
                .eq("id", user_id_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch profile: {e}",
                code="FETCH_PROFILE_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def fetch_notification_preferences(cls, user_id: str | UUID) -> dict[str, Any] | None:
        """
        Fetch a user's notification_preferences JSON.

        Returns None when the profile is missing or has no preferences,
        which callers treat as "everything enabled".
        """
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("profiles")
                .select("notification_preferences")
                .eq("id", user_id_str)
                .single()
                .execute()
            )
            if response.data:
                return response.data.get("notification_preferences")
            return None

        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch notification preferences: {e}",
                code="FETCH_PREFERENCES_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def fetch_preferences_map(cls, user_ids: list[str]) -> dict[str, dict[str, Any] | None]:
        """
        Fetch notification preferences for several users in one query.

        Users without a profile row are simply absent from the result.
        """
        if not user_ids:
            return {}

        client = cls.get_client()

        try:
            response = (
                client.table("profiles")
                .select("id, notification_preferences")
                .in_("id", [cls._normalize_uuid(u) for u in user_ids])
                .execute()
            )
            return {
                str(row["id"]): row.get("notification_preferences")
                for row in (response.data or [])
            }

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch notification preferences: {e}",
                code="FETCH_PREFERENCES_FAILED",
                details={"user_count": len(user_ids)}
            )

    # -------------------------------------------------------------------------
    # Counting
    # -------------------------------------------------------------------------

    @classmethod
    def count(
        cls,
        table: str,
        eq: dict[str, Any] | None = None,
        gte: dict[str, Any] | None = None,
    ) -> int:
        """
        Exact row count for a table with optional equality / lower-bound filters.

        Example:
            SupabaseClient.count("profiles", eq={"is_vendor": True})
        """
        client = cls.get_client()

        try:
            query = client.table(table).select("id", count="exact")
            for column, value in (eq or {}).items():
                query = query.eq(column, value)
            for column, value in (gte or {}).items():
                query = query.gte(column, value)
            response = query.limit(1).execute()
            return response.count or 0

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to count rows in {table}: {e}",
                code="COUNT_FAILED",
                details={"table": table}
            )

    # -------------------------------------------------------------------------
    # Edge Functions
    # -------------------------------------------------------------------------

    @classmethod
    def invoke_function(cls, name: str, body: dict[str, Any]) -> bool:
        """
        Invoke a Supabase Edge Function without letting failures propagate.

        Used for side effects such as transactional emails, which must
        never fail the request that triggered them.

        Returns:
            True if the function was invoked successfully
        """
        try:
            client = cls.get_client()
            client.functions.invoke(name, invoke_options={"body": body})
            logger.debug(f"Invoked edge function {name}")
            return True
        except Exception as e:
            logger.error(f"Edge function {name} failed: {e}")
            return False
