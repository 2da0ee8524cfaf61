"""
Unit Tests for Progress Stores

Tests the in-memory, local JSON and Supabase persistence strategies.
Supabase is replaced by a small fake implementing the query-builder chain.
"""

import json

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "math_puzzle_engine", "src"))

from math_puzzle_engine.config import EngineConfig
from math_puzzle_engine.progress_record import ProgressRecord
from math_puzzle_engine.progress_store import (
    InMemoryProgressStore,
    LocalProgressStore,
    SupabaseProgressStore,
    build_progress_store,
)


class FakeResult:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Records one table operation and applies it on execute()."""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.filters = {}
        self.operation = "select"
        self.payload = None
        self.on_conflict = None

    def select(self, _columns="*"):
        self.operation = "select"
        return self

    def eq(self, column, value):
        self.filters[column] = value
        return self

    def upsert(self, payload, on_conflict=None):
        self.operation = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        return self

    def insert(self, payload):
        self.operation = "insert"
        self.payload = payload
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def execute(self):
        if self.client.fail:
            raise RuntimeError("connection refused")

        rows = self.client.tables.setdefault(self.table, [])
        if self.operation == "select":
            return FakeResult([
                dict(row) for row in rows
                if all(row.get(k) == v for k, v in self.filters.items())
            ])

        if self.operation == "delete":
            removed = [r for r in rows if all(r.get(k) == v for k, v in self.filters.items())]
            rows[:] = [r for r in rows if r not in removed]
            return FakeResult(removed)

        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        if self.operation == "upsert":
            keys = self.on_conflict.split(",")
            for item in payload:
                rows[:] = [r for r in rows if any(r.get(k) != item.get(k) for k in keys)]
                rows.append(dict(item))
        else:
            rows.extend(dict(item) for item in payload)
        return FakeResult([dict(item) for item in payload])


class FakeSupabase:
    def __init__(self, fail=False):
        self.tables = {}
        self.fail = fail

    def table(self, name):
        return FakeQuery(self, name)


def sample_record():
    return ProgressRecord(
        current_level=4,
        highest_level_reached=4,
        total_score=120,
        total_questions_answered=12,
        total_correct_answers=11,
        streak=2,
        longest_streak=3,
        levels_completed={1, 2, 3},
    )


class TestInMemoryProgressStore:
    """Test suite for InMemoryProgressStore."""

    def test_round_trip_and_isolation(self):
        """Saved records come back equal but are copies."""
        store = InMemoryProgressStore()
        record = sample_record()
        assert store.save("p1", record) is True

        loaded = store.load("p1")
        assert loaded == record
        loaded.levels_completed.add(9)
        assert store.load("p1").levels_completed == {1, 2, 3}

    def test_missing_key(self):
        store = InMemoryProgressStore()
        assert store.load("nobody") is None
        assert store.delete("nobody") is False


class TestLocalProgressStore:
    """Test suite for LocalProgressStore."""

    def test_round_trip(self, tmp_path):
        store = LocalProgressStore(str(tmp_path / "progress"))
        record = sample_record()
        assert store.save("user-42", record) is True

        path = store.path_for("user-42")
        assert path.name == "math_level_progress_user-42.json"
        assert json.loads(path.read_text())["levels_completed"] == [1, 2, 3]

        loaded = store.load("user-42")
        assert loaded.levels_completed == {1, 2, 3}
        assert loaded.total_score == 120
        assert loaded.last_played_at == record.last_played_at

    def test_unsafe_keys_are_sanitized(self, tmp_path):
        store = LocalProgressStore(str(tmp_path))
        assert store.path_for("../evil/key").parent == tmp_path

    def test_missing_and_corrupt_files(self, tmp_path):
        """Missing files load as None; corrupt files are logged and load as None."""
        store = LocalProgressStore(str(tmp_path))
        assert store.load("nobody") is None

        store.path_for("broken").write_text("{ not json")
        assert store.load("broken") is None

        store.path_for("invalid").write_text(json.dumps({"current_level": 0}))
        assert store.load("invalid") is None


class TestSupabaseProgressStore:
    """Test suite for SupabaseProgressStore."""

    def test_round_trip(self):
        client = FakeSupabase()
        store = SupabaseProgressStore(client)
        assert store.save("user-1", sample_record()) is True

        assert len(client.tables["math_user_progress"]) == 1
        assert {r["level_number"] for r in client.tables["math_level_completions"]} == {1, 2, 3}

        loaded = store.load("user-1")
        assert loaded.current_level == 4
        assert loaded.levels_completed == {1, 2, 3}

    def test_save_twice_upserts(self):
        """Saving again replaces the progress row and keeps one row per completed level."""
        client = FakeSupabase()
        store = SupabaseProgressStore(client)
        record = sample_record()
        store.save("user-1", record)
        record.levels_completed.add(4)
        store.save("user-1", record)

        assert len(client.tables["math_user_progress"]) == 1
        assert len(client.tables["math_level_completions"]) == 4

    def test_shrunk_completion_set_is_saved(self):
        """Saving after a reset drops completion rows the record no longer holds."""
        client = FakeSupabase()
        store = SupabaseProgressStore(client)
        store.save("user-1", sample_record())
        store.save("user-2", sample_record())

        assert store.save("user-1", ProgressRecord()) is True

        loaded = store.load("user-1")
        assert loaded.levels_completed == set()
        assert loaded.highest_level_reached == 1
        assert store.load("user-2").levels_completed == {1, 2, 3}

    def test_unknown_user(self):
        assert SupabaseProgressStore(FakeSupabase()).load("ghost") is None

    def test_failures_return_signals(self):
        """Remote errors are reported as None / False, never raised."""
        store = SupabaseProgressStore(FakeSupabase(fail=True))
        assert store.load("user-1") is None
        assert store.save("user-1", sample_record()) is False
        assert store.record_score("user-1", {"score": 10}) is False

    def test_record_score(self):
        client = FakeSupabase()
        store = SupabaseProgressStore(client)
        assert store.record_score("user-1", {"score": 130, "difficulty": "easy"}) is True
        assert client.tables["math_scores"] == [{"score": 130, "difficulty": "easy", "user_id": "user-1"}]


class TestBuildProgressStore:
    """Test suite for persistence strategy selection."""

    def test_memory_backend(self):
        assert isinstance(build_progress_store(EngineConfig(progress_backend="memory")), InMemoryProgressStore)

    def test_local_backend(self, tmp_path):
        store = build_progress_store(EngineConfig(progress_backend="local", progress_dir=str(tmp_path)))
        assert isinstance(store, LocalProgressStore)
        assert store.directory == tmp_path

    def test_supabase_backend_with_client(self):
        client = FakeSupabase()
        store = build_progress_store(EngineConfig(progress_backend="supabase"), supabase_client=client)
        assert isinstance(store, SupabaseProgressStore)
        assert store.supabase is client

    def test_supabase_backend_requires_credentials(self):
        with pytest.raises(ValueError):
            build_progress_store(EngineConfig(progress_backend="supabase"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
