"""Shared test fixtures.

Provides a ``test_client`` for FastAPI, mock Supabase client fixtures for
the health router, an in-memory ``FakeSupabase`` for end-to-end service
tests, and a ``make_row`` factory for candidate rows.
"""

import copy
import os
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock, patch
from uuid import uuid4

# Settings are instantiated at import time; provide the required values
# before any application module is imported.
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")
os.environ.setdefault("SELF_SCAN_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient


# ---------------------------------------------------------------------------
# In-memory Supabase fake
# ---------------------------------------------------------------------------

class FakeResult:
    """Mimics the ``APIResponse`` returned by ``execute()``."""

    def __init__(self, data: list[dict[str, Any]]) -> None:
        self.data = data
        self.count = None


class FakeQuery:
    """Subset of the PostgREST query builder used by the repository."""

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._payload: Any = None
        self._filters: list[tuple[str, str, Any]] = []
        self._order: list[tuple[str, bool]] = []
        self._range: tuple[int, int] | None = None
        self._limit: int | None = None

    # -- operations --
    def select(self, *_columns: str) -> "FakeQuery":
        self._op = "select"
        return self

    def update(self, data: dict[str, Any]) -> "FakeQuery":
        self._op = "update"
        self._payload = data
        return self

    def insert(self, data: dict[str, Any]) -> "FakeQuery":
        self._op = "insert"
        self._payload = data
        return self

    # -- filters / modifiers --
    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(("eq", column, value))
        return self

    def is_(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(("is", column, value))
        return self

    def in_(self, column: str, values: list[Any]) -> "FakeQuery":
        self._filters.append(("in", column, list(values)))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order.append((column, desc))
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self._range = (start, end)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        for kind, column, value in self._filters:
            if kind == "eq" and row.get(column) != value:
                return False
            if kind == "is" and value == "null" and row.get(column) is not None:
                return False
            if kind == "in" and row.get(column) not in value:
                return False
        return True

    def filter_value(self, column: str) -> Any:
        """Value of the first ``eq`` filter on *column* (for hooks)."""
        for kind, col, value in self._filters:
            if kind == "eq" and col == column:
                return value
        return None

    def execute(self) -> FakeResult:
        self._db.calls.append((self._table, self._op, list(self._filters)))
        hook = self._db.hooks.get((self._table, self._op))
        if hook is not None:
            hook(self)

        rows = self._db.tables.setdefault(self._table, [])

        if self._op == "insert":
            row = copy.deepcopy(self._payload)
            rows.append(row)
            return FakeResult([copy.deepcopy(row)])

        matched = [r for r in rows if self._matches(r)]

        if self._op == "update":
            for row in matched:
                row.update(copy.deepcopy(self._payload))
            return FakeResult([copy.deepcopy(r) for r in matched])

        for column, desc in reversed(self._order):
            matched.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        if self._range is not None:
            start, end = self._range
            matched = matched[start:end + 1]
        if self._limit is not None:
            matched = matched[: self._limit]
        return FakeResult([copy.deepcopy(r) for r in matched])


class FakeSupabase:
    """In-memory stand-in for the Supabase client.

    ``tables`` maps table names to lists of row dicts.  ``hooks`` maps
    ``(table, op)`` to a callable receiving the query right before it runs;
    raising inside a hook simulates a storage error.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {"candidates": [], "audit_log": []}
        self.hooks: dict[tuple[str, str], Callable[[FakeQuery], None]] = {}
        self.calls: list[tuple[str, str, list[tuple[str, str, Any]]]] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def row(self, candidate_id: str) -> dict[str, Any]:
        return next(r for r in self.tables["candidates"] if r["id"] == candidate_id)

    def count_calls(self, table: str, op: str) -> int:
        return sum(1 for t, o, _ in self.calls if t == table and o == op)


@pytest.fixture()
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture()
def repo(fake_db: FakeSupabase) -> Any:
    """A ``CandidateRepository`` backed by ``fake_db``."""
    from candidate_dedup.db.repository import CandidateRepository

    return CandidateRepository(client=fake_db)  # type: ignore[arg-type]


@pytest.fixture()
def make_row() -> Callable[..., dict[str, Any]]:
    """Factory for candidate rows; each call is one second newer."""
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(**overrides: Any) -> dict[str, Any]:
        counter["n"] += 1
        created = (base + timedelta(seconds=counter["n"])).isoformat()
        row: dict[str, Any] = {
            "id": str(uuid4()),
            "dni": None,
            "first_name": "Maria",
            "last_name": "Lopez",
            "maternal_last_name": None,
            "full_name": None,
            "phone": "987654321",
            "phone_normalized": None,
            "email": None,
            "name_phonetic": None,
            "zone": None,
            "address": None,
            "status": "available",
            "times_hired": 0,
            "last_hired_at": None,
            "last_contacted_at": None,
            "notes": None,
            "tags": [],
            "source": "manual",
            "is_duplicate": False,
            "duplicate_of": None,
            "dedup_reviewed": False,
            "dedup_reviewed_at": None,
            "dedup_reviewed_by": None,
            "created_at": created,
            "updated_at": created,
            "deleted_at": None,
        }
        row.update(overrides)
        return row

    return _make


# ---------------------------------------------------------------------------
# Health router / app fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def mock_supabase_module() -> Generator[MagicMock, None, None]:
    """Patch the Supabase client used by ``ping`` with a reachable mock."""
    mock_client = MagicMock()
    mock_table = MagicMock()
    mock_select = MagicMock()
    mock_limit = MagicMock()

    mock_client.table.return_value = mock_table
    mock_table.select.return_value = mock_select
    mock_select.limit.return_value = mock_limit
    mock_limit.execute.return_value = MagicMock()  # non-None result

    with patch("candidate_dedup.db.supabase.get_supabase", return_value=mock_client):
        yield mock_client


@pytest.fixture()
def mock_supabase_disconnected() -> Generator[MagicMock, None, None]:
    """Patch ``get_supabase`` to simulate a disconnected database."""
    with patch(
        "candidate_dedup.db.supabase.get_supabase",
        side_effect=Exception("Connection refused"),
    ):
        yield MagicMock()


@pytest.fixture()
def test_client() -> Generator[TestClient, None, None]:
    """Provide a FastAPI TestClient."""
    from candidate_dedup.main import app

    with TestClient(app) as client:
        yield client
