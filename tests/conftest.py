# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - An in-memory stand-in for the Supabase client (tables, RPCs, storage,
#   edge functions) so services run their real query chains
# - Redis publishing and Celery queueing are patched out for every test
# =============================================================================

import os
import re
import time
import uuid
from copy import deepcopy
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-for-hs256-tokens")
os.environ.setdefault("CRON_SECRET", "test-cron-secret-0123456789")
os.environ.setdefault("PUSH_MAX_RETRIES", "5")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest
from jose import jwt

from lib.supabase_client import SupabaseClient
from lib.utils import parse_timestamp


# =============================================================================
# In-memory Supabase
# =============================================================================

class FakeAPIError(Exception):
    """Mimics postgrest's APIError: message text carries the error code."""

    def __init__(self, message: str, code: str):
        super().__init__(f"{message} (code {code})")
        self.code = code


def _comparable(value):
    if isinstance(value, str):
        parsed = parse_timestamp(value) if "T" in value or value[:4].isdigit() and "-" in value else None
        if parsed is not None:
            return parsed
    return value


def _sort_key(value):
    value = _comparable(value)
    if isinstance(value, datetime):
        return (0, value.timestamp())
    if isinstance(value, (int, float)):
        return (0, value)
    return (0, str(value))


class FakeQuery:
    """Chainable query builder over one table of FakeSupabase."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.operation = "select"
        self.payload = None
        self.filters = []
        self.ordering = []
        self.limit_count = None
        self.offset = 0
        self.count_mode = None
        self.single_row = False

    # -- operations ----------------------------------------------------------

    def select(self, columns: str = "*", count: str | None = None):
        if self.operation == "select":
            self.count_mode = count
        return self

    def insert(self, rows):
        self.operation = "insert"
        self.payload = rows
        return self

    def update(self, changes):
        self.operation = "update"
        self.payload = changes
        return self

    def delete(self):
        self.operation = "delete"
        return self

    # -- filters -------------------------------------------------------------

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def ilike(self, column, pattern):
        regex = re.compile(
            "".join(".*" if c == "%" else "." if c == "_" else re.escape(c) for c in pattern),
            re.IGNORECASE,
        )
        self.filters.append(lambda row: row.get(column) is not None and regex.fullmatch(str(row.get(column))) is not None)
        return self

    def gte(self, column, value):
        bound = _comparable(value)
        self.filters.append(lambda row: row.get(column) is not None and _comparable(row.get(column)) >= bound)
        return self

    def lte(self, column, value):
        bound = _comparable(value)
        self.filters.append(lambda row: row.get(column) is not None and _comparable(row.get(column)) <= bound)
        return self

    def is_(self, column, value):
        if value == "null":
            self.filters.append(lambda row: row.get(column) is None)
        else:
            self.filters.append(lambda row: row.get(column) == value)
        return self

    # -- modifiers -----------------------------------------------------------

    def order(self, column, desc: bool = False):
        self.ordering.append((column, desc))
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def range(self, start, end):
        self.offset = start
        self.limit_count = end - start + 1
        return self

    def single(self):
        self.single_row = True
        return self

    # -- execution -----------------------------------------------------------

    def _matching(self):
        rows = self.db.tables.setdefault(self.table_name, [])
        return [row for row in rows if all(f(row) for f in self.filters)]

    def execute(self):
        self.db.executed.append((self.table_name, self.operation))
        error = self.db.errors.get((self.table_name, self.operation))
        if error is not None:
            raise error

        if self.operation == "insert":
            return SimpleNamespace(data=self.db._insert(self.table_name, self.payload), count=None)

        matched = self._matching()

        if self.operation == "update":
            for row in matched:
                row.update(deepcopy(self.payload))
            return SimpleNamespace(data=deepcopy(matched), count=None)

        if self.operation == "delete":
            rows = self.db.tables[self.table_name]
            self.db.tables[self.table_name] = [r for r in rows if not any(r is m for m in matched)]
            return SimpleNamespace(data=deepcopy(matched), count=None)

        for column, desc in reversed(self.ordering):
            present = [r for r in matched if r.get(column) is not None]
            missing = [r for r in matched if r.get(column) is None]
            present.sort(key=lambda r: _sort_key(r.get(column)), reverse=desc)
            matched = present + missing

        total = len(matched)
        matched = matched[self.offset:]
        if self.limit_count is not None:
            matched = matched[:self.limit_count]

        if self.single_row:
            if len(matched) != 1:
                raise FakeAPIError("JSON object requested, multiple (or no) rows returned", "PGRST116")
            return SimpleNamespace(data=deepcopy(matched[0]), count=None)

        count = total if self.count_mode == "exact" else None
        return SimpleNamespace(data=deepcopy(matched), count=count)


class FakeBucket:
    def __init__(self, db: "FakeSupabase", name: str):
        self.db = db
        self.name = name

    def upload(self, path, file, file_options=None):
        if self.db.errors.get(("storage", "upload")):
            raise self.db.errors[("storage", "upload")]
        self.db.uploads.append({"bucket": self.name, "path": path, "size": len(file), "options": file_options})
        return {"Key": f"{self.name}/{path}"}

    def get_public_url(self, path):
        return f"https://test-project.supabase.co/storage/v1/object/public/{self.name}/{path}"

    def remove(self, paths):
        self.db.removed.extend(paths)
        return paths


class FakeStorage:
    def __init__(self, db: "FakeSupabase"):
        self.db = db

    def from_(self, bucket):
        return FakeBucket(self.db, bucket)

    def list_buckets(self):
        return [SimpleNamespace(name="vendor-logos")]


class FakeFunctions:
    def __init__(self, db: "FakeSupabase"):
        self.db = db

    def invoke(self, name, invoke_options=None):
        self.db.function_calls.append((name, (invoke_options or {}).get("body")))
        return b"{}"


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str):
        self.db = db
        self.name = name

    def execute(self):
        self.db.rpc_calls.append(self.name)
        return SimpleNamespace(data=deepcopy(self.db.rpc_results.get(self.name)), count=None)


class FakeSupabase:
    """
    Minimal in-memory Supabase client.

    - Column lists in select() are ignored; whole rows come back
    - `unique` maps a table to column tuples that must stay unique
    - `errors[(table, operation)]` makes that operation raise
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.unique: dict[str, list[tuple[str, ...]]] = {}
        self.errors: dict[tuple[str, str], Exception] = {}
        self.rpc_results: dict[str, object] = {}
        self.rpc_calls: list[str] = []
        self.function_calls: list[tuple[str, dict]] = []
        self.uploads: list[dict] = []
        self.removed: list[str] = []
        self.executed: list[tuple[str, str]] = []
        self.storage = FakeStorage(self)
        self.functions = FakeFunctions(self)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params=None) -> FakeRpc:
        return FakeRpc(self, name)

    def seed(self, table: str, *rows: dict) -> list[dict]:
        """Add rows (ids and created_at filled in when missing)."""
        return self._insert(table, list(rows), enforce=False)

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])

    def _insert(self, table: str, rows, enforce: bool = True) -> list[dict]:
        rows = rows if isinstance(rows, list) else [rows]
        stored = self.tables.setdefault(table, [])
        inserted = []
        for row in rows:
            row = deepcopy(row)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            if enforce:
                for columns in self.unique.get(table, []):
                    key = tuple(row.get(c) for c in columns)
                    if any(tuple(r.get(c) for c in columns) == key for r in stored):
                        raise FakeAPIError("duplicate key value violates unique constraint", "23505")
            stored.append(row)
            inserted.append(deepcopy(row))
        return inserted


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_db(monkeypatch):
    """Install a fresh FakeSupabase as the shared client."""
    db = FakeSupabase()
    monkeypatch.setattr(SupabaseClient, "_instance", db)
    return db


@pytest.fixture(autouse=True)
def background():
    """
    Keep tests off Redis and the Celery broker.

    Yields the mocks so tests can assert on publishes and queued pushes.
    """
    with patch("app.websocket.broadcast.get_redis_client") as redis_client, \
            patch("workers.tasks.dispatch_push_notification") as dispatch:
        yield SimpleNamespace(redis=redis_client.return_value, dispatch=dispatch)


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


@pytest.fixture
def other_user_id():
    return str(uuid.uuid4())


def make_token(sub: str, email: str | None = "driver@example.com", expires_in: int = 3600) -> str:
    """HS256 Supabase-style access token."""
    now = int(time.time())
    return jwt.encode(
        {
            "sub": sub,
            "email": email,
            "role": "authenticated",
            "aud": "authenticated",
            "iat": now,
            "exp": now + expires_in,
        },
        os.environ["SUPABASE_JWT_SECRET"],
        algorithm="HS256",
    )


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def fake_fcm():
    """FCM client double that records sends."""
    client = MagicMock()
    client.sent = []

    def send(token, data, link="/"):
        client.sent.append({"token": token, "data": data, "link": link})
        return f"projects/test/messages/{len(client.sent)}"

    client.send.side_effect = send
    return client
