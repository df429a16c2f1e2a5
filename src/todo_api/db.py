from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Generator, List, Optional

from .models import TodoEntity, TodoPriority
from .repositories import ListQuery, Repository, apply_update, set_completion
from .schemas import CreateTodoRequest, UpdateTodoRequest
from .utils import decode_tags, encode_tags, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    is_completed: str = "is_completed"
    created_at: str = "created_at"
    completed_at: str = "completed_at"
    due_date: str = "due_date"
    priority: str = "priority"
    tags: str = "tags"


_COLS = _Cols()


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    # Fixed-width timestamps so text ordering matches chronological ordering
    return value.isoformat(timespec="microseconds") if value else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_due_date(value: Optional[str]) -> Optional[date]:
    """
    Read a stored due date. Rows written before due dates became plain dates
    hold a full datetime string; only its date part is kept.
    """
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return datetime.fromisoformat(value).date()


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self, write: bool = False) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            if write:
                # Take the write lock up front for read-modify-write operations
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.description} TEXT NULL,
                    {_COLS.is_completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.completed_at} TEXT NULL,
                    {_COLS.due_date} TEXT NULL,
                    {_COLS.priority} INTEGER NOT NULL DEFAULT 1,
                    {_COLS.tags} TEXT NULL
                )
                """
            )
            for col in (_COLS.is_completed, _COLS.created_at, _COLS.priority):
                conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_{col} ON {_COLS.table}({col})")
        logger.debug("SQLite schema ready at %s", self._db_path)

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        return {
            "id": int(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "description": row[_COLS.description],
            "is_completed": bool(row[_COLS.is_completed]),
            "created_at": _parse_ts(row[_COLS.created_at]),  # type: ignore[typeddict-item]
            "completed_at": _parse_ts(row[_COLS.completed_at]),
            "due_date": _parse_due_date(row[_COLS.due_date]),
            "priority": TodoPriority(int(row[_COLS.priority])),
            "tags": decode_tags(row[_COLS.tags]),
        }

    def _fetch(self, conn: sqlite3.Connection, todo_id: int) -> Optional[TodoEntity]:
        row = conn.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (todo_id,)).fetchone()
        return self._row_to_entity(row) if row else None

    def _save(self, conn: sqlite3.Connection, todo: TodoEntity) -> None:
        conn.execute(
            f"""
            UPDATE {_COLS.table}
            SET {_COLS.title} = ?, {_COLS.description} = ?, {_COLS.is_completed} = ?,
                {_COLS.completed_at} = ?, {_COLS.due_date} = ?, {_COLS.priority} = ?, {_COLS.tags} = ?
            WHERE {_COLS.id} = ?
            """,
            (
                todo["title"],
                todo["description"],
                1 if todo["is_completed"] else 0,
                _format_ts(todo["completed_at"]),
                todo["due_date"].isoformat() if todo["due_date"] else None,
                int(todo["priority"]),
                encode_tags(todo["tags"]),
                todo["id"],
            ),
        )

    def create(self, data: CreateTodoRequest) -> TodoEntity:
        now = _format_ts(utc_now())
        due = data.due_date.isoformat() if data.due_date else None
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.title}, {_COLS.description}, {_COLS.is_completed},
                    {_COLS.created_at}, {_COLS.completed_at}, {_COLS.due_date}, {_COLS.priority}, {_COLS.tags})
                VALUES (?, ?, 0, ?, NULL, ?, ?, ?)
                """,
                (data.title, data.description, now, due, int(data.priority), encode_tags(data.tags)),
            )
            new_id = cur.lastrowid
            assert new_id is not None
            created = self._fetch(conn, new_id)
            assert created is not None
            logger.debug("Inserted todo %s", new_id)
            return created

    def get(self, todo_id: int) -> Optional[TodoEntity]:
        with self._conn() as conn:
            return self._fetch(conn, todo_id)

    def update(self, todo_id: int, data: UpdateTodoRequest) -> Optional[TodoEntity]:
        with self._conn(write=True) as conn:
            current = self._fetch(conn, todo_id)
            if current is None:
                return None
            updated = apply_update(current, data, utc_now())
            self._save(conn, updated)
            return self._fetch(conn, todo_id)

    def delete(self, todo_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (todo_id,))
            return cur.rowcount > 0

    def toggle_complete(self, todo_id: int) -> Optional[TodoEntity]:
        with self._conn(write=True) as conn:
            todo = self._fetch(conn, todo_id)
            if todo is None:
                return None
            set_completion(todo, not todo["is_completed"], utc_now())
            self._save(conn, todo)
            return self._fetch(conn, todo_id)

    def list(self, query: Optional[ListQuery] = None) -> List[TodoEntity]:
        q = query or ListQuery()
        clauses = []
        params: list = []

        if q.is_completed is not None:
            clauses.append(f"{_COLS.is_completed} = ?")
            params.append(1 if q.is_completed else 0)

        if q.priority is not None:
            clauses.append(f"{_COLS.priority} = ?")
            params.append(int(q.priority))

        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        order_sql = (
            f"ORDER BY {_COLS.is_completed} ASC, {_COLS.priority} DESC, "
            f"{_COLS.due_date} IS NULL ASC, {_COLS.due_date} ASC, "
            f"{_COLS.created_at} DESC, {_COLS.id} DESC"
        )

        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_COLS.table}
                {where_sql}
                {order_sql}
                """,
                params,
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]
