# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - FakeSupabase: in-memory stand-in for the supabase-py query builder,
#   installed as the SupabaseClient singleton
# - Redis publishing replaced with a MagicMock so events can be inspected
# =============================================================================

import json
import os
import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("FIREBASE_API_KEY", "test-firebase-key")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "false")

import pytest
from jose import jwt

TEST_JWT_SECRET = os.environ["SUPABASE_JWT_SECRET"]
BASE_TIME = datetime(2025, 3, 2, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# In-memory Supabase
# =============================================================================

class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Records a query chain and evaluates it against FakeSupabase.tables."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.operation = "select"
        self.columns = "*"
        self.count_mode = None
        self.head = False
        self.payload = None
        self.on_conflict = None
        self.ignore_duplicates = False
        self.filters = []
        self.order_by = None
        self.row_limit = None

    # -- builders -------------------------------------------------------------

    def select(self, columns="*", count=None, head=False):
        self.columns = columns
        self.count_mode = count
        self.head = head
        return self

    def insert(self, data):
        self.operation = "insert"
        self.payload = data
        return self

    def upsert(self, data, on_conflict=None, ignore_duplicates=False):
        self.operation = "upsert"
        self.payload = data
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, data):
        self.operation = "update"
        self.payload = data
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.filters.append(lambda row: row.get(column) is None)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    # -- evaluation -----------------------------------------------------------

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def _project(self, row):
        result = dict(row)
        if self.table == "chat_rooms" and "academies" in self.columns:
            result["academies"] = self.db.find("academies", id=row["academy_id"])
        return result

    def execute(self):
        self.db.calls.append((self.table, self.operation))
        failure = self.db.failures.get((self.table, self.operation))
        if failure is not None:
            raise failure

        rows = self.db.tables.setdefault(self.table, [])

        if self.operation == "insert":
            return FakeResponse([self.db.insert_row(self.table, dict(self.payload))])

        if self.operation == "upsert":
            key = self.on_conflict or "id"
            existing = next(
                (r for r in rows if key in self.payload and r.get(key) == self.payload[key]),
                None,
            )
            if existing is None:
                return FakeResponse([self.db.insert_row(self.table, dict(self.payload))])
            if self.ignore_duplicates:
                return FakeResponse([])
            existing.update(self.payload)
            return FakeResponse([dict(existing)])

        if self.operation == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return FakeResponse(updated)

        selected = [r for r in rows if self._matches(r)]
        if self.order_by:
            column, desc = self.order_by
            selected.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self.row_limit is not None:
            selected = selected[:self.row_limit]

        count = len(selected) if self.count_mode == "exact" else None
        data = [] if self.head else [self._project(r) for r in selected]
        return FakeResponse(data, count=count)


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        failure = self.db.failures.get(("rpc", self.name))
        if failure is not None:
            raise failure
        if self.name == "get_academy_chat_staff":
            return FakeResponse(list(self.db.staff.get(self.params["p_academy_id"], [])))
        return FakeResponse([])


class FakeAuthAdmin:
    def __init__(self, db):
        self.db = db
        self.created = []

    def create_user(self, attributes):
        failure = self.db.failures.get(("auth", "create_user"))
        if failure is not None:
            raise failure
        email = attributes["email"]
        if any(u["email"] == email for u in self.created):
            raise Exception("A user with this email address has already been registered")

        user_id = str(uuid4())
        self.created.append({"id": user_id, **attributes})
        # Mirrors the on-signup trigger that creates the profile row
        metadata = attributes.get("user_metadata") or {}
        self.db.insert_row("profiles", {
            "id": user_id,
            "phone": metadata.get("phone"),
            "email": email,
            "user_name": None,
        })
        return SimpleNamespace(user=SimpleNamespace(id=user_id))


class FakeSupabase:
    """
    Minimal in-memory Supabase client.

    Rows are plain dicts. failures maps (table, operation) to an exception
    raised from execute(), e.g. {("messages", "insert"): Exception("boom")}.
    chat_rooms enforces the (academy_id, parent_id, staff_id) unique key.
    """

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.staff: dict[str, list[dict]] = {}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self._clock = 0
        self.auth = SimpleNamespace(admin=FakeAuthAdmin(self))

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params):
        return FakeRpc(self, name, params)

    def now(self) -> str:
        self._clock += 1
        return (BASE_TIME + timedelta(seconds=self._clock)).isoformat()

    def insert_row(self, table: str, row: dict) -> dict:
        rows = self.tables.setdefault(table, [])
        row.setdefault("id", str(uuid4()))

        if table == "chat_rooms":
            key = (row["academy_id"], row["parent_id"], row.get("staff_id"))
            for existing in rows:
                if (existing["academy_id"], existing["parent_id"], existing.get("staff_id")) == key:
                    raise Exception(
                        'duplicate key value violates unique constraint "chat_rooms_key" (23505)'
                    )
            row.setdefault("staff_id", None)
            row.setdefault("updated_at", self.now())
        if table == "messages":
            row.setdefault("is_read", False)
            row.setdefault("created_at", self.now())

        rows.append(row)
        return dict(row)

    def find(self, table: str, **conditions) -> dict | None:
        for row in self.tables.get(table, []):
            if all(row.get(k) == v for k, v in conditions.items()):
                return dict(row)
        return None

    def rows(self, table: str, **conditions) -> list[dict]:
        return [
            dict(row) for row in self.tables.get(table, [])
            if all(row.get(k) == v for k, v in conditions.items())
        ]

    # -- seeding helpers -------------------------------------------------------

    def add_user(self, role=None, user_name=None, phone=None, user_id=None) -> str:
        user_id = user_id or str(uuid4())
        self.insert_row("profiles", {
            "id": user_id, "user_name": user_name, "phone": phone, "email": None,
        })
        if role:
            self.insert_row("user_roles", {"id": str(uuid4()), "user_id": user_id, "role": role})
        return user_id

    def add_academy(self, owner_id=None, name="Sunrise Math") -> str:
        return self.insert_row("academies", {
            "name": name, "profile_image": None, "owner_id": owner_id,
        })["id"]

    def add_member(self, user_id, academy_id, role="admin", status="approved") -> None:
        self.insert_row("academy_members", {
            "user_id": user_id, "academy_id": academy_id, "role": role, "status": status,
        })

    def add_staff(self, academy_id, user_id, grade_label, display_name="Teacher") -> None:
        self.staff.setdefault(academy_id, []).append({
            "user_id": user_id,
            "display_name": display_name,
            "grade_label": grade_label,
            "bio": "",
            "image_url": None,
        })

    def add_room(self, academy_id, parent_id, staff_id=None) -> dict:
        return self.insert_row("chat_rooms", {
            "academy_id": academy_id, "parent_id": parent_id, "staff_id": staff_id,
        })

    def add_message(self, room_id, sender_id, content="Hello", is_read=False) -> dict:
        return self.insert_row("messages", {
            "chat_room_id": room_id, "sender_id": sender_id,
            "content": content, "is_read": is_read,
        })


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_db():
    """Install an in-memory Supabase client as the SupabaseClient singleton."""
    from lib.supabase_client import SupabaseClient

    db = FakeSupabase()
    previous = SupabaseClient._instance
    SupabaseClient._instance = db
    yield db
    SupabaseClient._instance = previous


@pytest.fixture(autouse=True)
def redis_publisher():
    """
    Replace the Redis client used for publishing.

    Published events are available through published_events(redis_publisher).
    """
    client = MagicMock()
    with patch("app.websocket.broadcast.get_redis_client", return_value=client):
        yield client


def published_events(client) -> list[dict]:
    return [json.loads(c.args[1]) for c in client.publish.call_args_list]


def make_token(user_id: str, email: str | None = None, expires_in: int = 3600) -> str:
    """Signed HS256 Supabase-style access token."""
    now = int(time.time())
    return jwt.encode(
        {
            "sub": user_id,
            "email": email,
            "aud": "authenticated",
            "iat": now,
            "exp": now + expires_in,
            "role": "authenticated",
        },
        TEST_JWT_SECRET,
        algorithm="HS256",
    )


@pytest.fixture
def academy_setup(fake_db):
    """
    An academy with an owner, an instructor, a vice director and a parent.

    Returns a namespace of ids.
    """
    owner_id = fake_db.add_user(role="admin", user_name="Director Kim")
    instructor_id = fake_db.add_user(role="admin", user_name="Teacher Lee")
    vice_id = fake_db.add_user(role="admin", user_name="Vice Park")
    parent_id = fake_db.add_user(role="parent", user_name="Minji Mom", phone="+821012345678")

    academy_id = fake_db.add_academy(owner_id=owner_id)
    fake_db.add_member(owner_id, academy_id, role="owner")
    fake_db.add_member(instructor_id, academy_id, role="admin")
    fake_db.add_member(vice_id, academy_id, role="admin")

    fake_db.add_staff(academy_id, instructor_id, "강사", display_name="Teacher Lee")
    fake_db.add_staff(academy_id, vice_id, "부원장", display_name="Vice Park")
    fake_db.add_staff(academy_id, owner_id, "원장", display_name="Director Kim")

    return SimpleNamespace(
        academy_id=academy_id,
        owner_id=owner_id,
        instructor_id=instructor_id,
        vice_id=vice_id,
        parent_id=parent_id,
    )
