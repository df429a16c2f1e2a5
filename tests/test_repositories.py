import sqlite3
from datetime import date, datetime, timedelta, timezone

import pytest

from todo_api.db import SQLiteRepository
from todo_api.models import TodoPriority
from todo_api.repositories import InMemoryRepository, ListQuery
from todo_api.schemas import CreateTodoRequest, UpdateTodoRequest


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRepository()
    return SQLiteRepository(str(tmp_path / "nested" / "todos.db"))


def new(store, title="Task", **fields):
    return store.create(CreateTodoRequest(title=title, **fields))


def soon(days):
    return datetime.now(timezone.utc).date() + timedelta(days=days)


class TestCreateAndGet:
    def test_create_assigns_identity_and_defaults(self, store):
        todo = new(store, " Buy milk ", description=" semi-skimmed ")
        assert todo["id"] >= 1
        assert todo["title"] == "Buy milk"
        assert todo["description"] == "semi-skimmed"
        assert todo["is_completed"] is False
        assert todo["completed_at"] is None
        assert todo["priority"] == TodoPriority.MEDIUM
        assert todo["tags"] == []
        assert todo["created_at"].tzinfo is not None

    def test_ids_are_unique(self, store):
        assert new(store)["id"] != new(store)["id"]

    def test_get_round_trips_fields(self, store):
        created = new(store, "Trip", due_date=soon(4), priority=3, tags=["travel", "family"])
        fetched = store.get(created["id"])
        assert fetched == created
        assert fetched["due_date"] == soon(4)
        assert fetched["priority"] is TodoPriority.URGENT
        assert fetched["tags"] == ["travel", "family"]

    def test_get_missing(self, store):
        assert store.get(12345) is None


class TestUpdate:
    def test_only_priority_changes(self, store):
        created = new(store, "Report", description="Q3 numbers")
        updated = store.update(created["id"], UpdateTodoRequest(priority=2))
        assert updated["priority"] == TodoPriority.HIGH
        assert updated["title"] == "Report"
        assert updated["description"] == "Q3 numbers"
        assert updated["created_at"] == created["created_at"]

    def test_completion_transitions(self, store):
        tid = new(store)["id"]
        done = store.update(tid, UpdateTodoRequest(is_completed=True))
        assert done["is_completed"] is True
        assert done["completed_at"] is not None

        still_done = store.update(tid, UpdateTodoRequest(is_completed=True, title="Renamed"))
        assert still_done["completed_at"] == done["completed_at"]

        reopened = store.update(tid, UpdateTodoRequest(is_completed=False))
        assert reopened["is_completed"] is False
        assert reopened["completed_at"] is None

    def test_explicit_nulls_clear(self, store):
        tid = new(store, description="x", due_date=soon(1), tags=["a"])["id"]
        cleared = store.update(tid, UpdateTodoRequest.model_validate({"description": None, "dueDate": None, "tags": []}))
        assert cleared["description"] is None
        assert cleared["due_date"] is None
        assert cleared["tags"] == []

    def test_update_missing(self, store):
        assert store.update(999, UpdateTodoRequest(title="x")) is None


class TestDeleteAndToggle:
    def test_delete_then_get(self, store):
        tid = new(store)["id"]
        assert store.delete(tid) is True
        assert store.get(tid) is None
        assert store.delete(tid) is False

    def test_toggle_twice_restores_state(self, store):
        original = new(store)
        first = store.toggle_complete(original["id"])
        assert first["is_completed"] is True
        assert first["completed_at"] is not None
        second = store.toggle_complete(original["id"])
        assert second == original

    def test_toggle_missing(self, store):
        assert store.toggle_complete(42) is None


class TestList:
    def test_ordering(self, store):
        low = new(store, "low", priority=0)["id"]
        done = new(store, "done urgent", priority=3)["id"]
        store.toggle_complete(done)
        high_late = new(store, "high late", priority=2, due_date=soon(6))["id"]
        high_soon = new(store, "high soon", priority=2, due_date=soon(2))["id"]
        medium_old = new(store, "medium old")["id"]
        medium_new = new(store, "medium new")["id"]

        ids = [t["id"] for t in store.list()]
        assert ids == [high_soon, high_late, medium_new, medium_old, low, done]

    def test_filter_by_priority(self, store):
        for p in (0, 2, 2, 3):
            new(store, f"p{p}", priority=p)
        items = store.list(ListQuery(priority=TodoPriority.HIGH))
        assert len(items) == 2
        assert {t["priority"] for t in items} == {TodoPriority.HIGH}

    def test_filter_by_completion(self, store):
        a = new(store, "a")["id"]
        b = new(store, "b")["id"]
        store.toggle_complete(b)
        assert [t["id"] for t in store.list(ListQuery(is_completed=False))] == [a]
        assert [t["id"] for t in store.list(ListQuery(is_completed=True))] == [b]


class TestSQLiteStorage:
    def test_empty_tags_stored_as_null(self, tmp_path):
        path = tmp_path / "todos.db"
        repo = SQLiteRepository(str(path))
        tid = repo.create(CreateTodoRequest(title="x", tags=[]))["id"]
        tagged = repo.create(CreateTodoRequest(title="y", tags=["a", "b"]))["id"]

        with sqlite3.connect(path) as conn:
            rows = dict(conn.execute("SELECT id, tags FROM todos").fetchall())
        assert rows[tid] is None
        assert rows[tagged] == "a,b"

    def test_reads_legacy_datetime_due_dates(self, tmp_path):
        path = tmp_path / "todos.db"
        repo = SQLiteRepository(str(path))
        with sqlite3.connect(path) as conn:
            conn.execute(
                "INSERT INTO todos (title, is_completed, created_at, due_date, priority) VALUES (?, 0, ?, ?, 1)",
                ("legacy", "2024-05-01T08:00:00", "2024-06-30 00:00:00"),
            )
        (todo,) = repo.list()
        assert todo["due_date"] == date(2024, 6, 30)
        assert todo["created_at"] == datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)

    def test_data_survives_reopen(self, tmp_path):
        path = str(tmp_path / "todos.db")
        tid = SQLiteRepository(path).create(CreateTodoRequest(title="persist me"))["id"]
        assert SQLiteRepository(path).get(tid)["title"] == "persist me"
