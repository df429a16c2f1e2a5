from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from threading import RLock
from typing import Iterable, List, Optional

from .models import TodoEntity, TodoPriority
from .schemas import CreateTodoRequest, UpdateTodoRequest
from .settings import get_settings
from .utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListQuery:
    """
    Filters for listing todos. None means "do not filter on this field".
    """
    is_completed: Optional[bool] = None
    priority: Optional[TodoPriority] = None


def set_completion(todo: TodoEntity, completed: bool, now: datetime) -> None:
    """
    Set the completion flag in place, keeping completed_at in step with it.
    completed_at only moves when the flag actually turns on.
    """
    if completed and not todo["is_completed"]:
        todo["completed_at"] = now
    elif not completed:
        todo["completed_at"] = None
    todo["is_completed"] = completed


def apply_update(current: TodoEntity, data: UpdateTodoRequest, now: datetime) -> TodoEntity:
    """
    Return a copy of ``current`` with the fields the client actually sent applied.
    """
    provided = data.model_fields_set
    updated = clone(current)
    if data.title is not None:
        updated["title"] = data.title
    if "description" in provided:
        updated["description"] = data.description
    if data.is_completed is not None:
        set_completion(updated, data.is_completed, now)
    if "due_date" in provided:
        updated["due_date"] = data.due_date
    if data.priority is not None:
        updated["priority"] = TodoPriority(data.priority)
    if "tags" in provided:
        updated["tags"] = list(data.tags or [])
    return updated


def clone(todo: TodoEntity) -> TodoEntity:
    copy = todo.copy()
    copy["tags"] = list(todo["tags"])
    return copy  # type: ignore[return-value]


def sort_todos(items: Iterable[TodoEntity]) -> List[TodoEntity]:
    """
    Order todos for display: incomplete first, then highest priority, then
    earliest due date (undated last), then newest first.
    """
    newest_first = sorted(items, key=lambda t: (t["created_at"], t["id"]), reverse=True)
    return sorted(
        newest_first,
        key=lambda t: (
            t["is_completed"],
            -int(t["priority"]),
            t["due_date"] is None,
            t["due_date"] or date.max,
        ),
    )


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for todo storage backends."""

    @abstractmethod
    def create(self, data: CreateTodoRequest) -> TodoEntity:
        """Create and return a new TodoEntity."""

    @abstractmethod
    def get(self, todo_id: int) -> Optional[TodoEntity]:
        """Return a TodoEntity by id, or None if not found."""

    @abstractmethod
    def update(self, todo_id: int, data: UpdateTodoRequest) -> Optional[TodoEntity]:
        """Update fields of an existing TodoEntity. Return updated entity or None if not found."""

    @abstractmethod
    def delete(self, todo_id: int) -> bool:
        """Delete a TodoEntity by id. Return True if deleted, False if not found."""

    @abstractmethod
    def toggle_complete(self, todo_id: int) -> Optional[TodoEntity]:
        """Flip the completion flag. Return the updated entity or None if not found."""

    @abstractmethod
    def list(self, query: Optional[ListQuery] = None) -> List[TodoEntity]:
        """
        Return all TodoEntities matching the filters, in display order
        (see sort_todos).
        """


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[int, TodoEntity] = {}
        self._next_id = 1

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def create(self, data: CreateTodoRequest) -> TodoEntity:
        entity: TodoEntity = {
            "id": self._allocate_id(),
            "title": data.title or "",
            "description": data.description,
            "is_completed": False,
            "created_at": utc_now(),
            "completed_at": None,
            "due_date": data.due_date,
            "priority": TodoPriority(data.priority),
            "tags": list(data.tags or []),
        }
        with self._lock:
            self._items[entity["id"]] = entity
        logger.debug("Stored todo %s in memory", entity["id"])
        return clone(entity)

    def get(self, todo_id: int) -> Optional[TodoEntity]:
        with self._lock:
            item = self._items.get(todo_id)
            return None if item is None else clone(item)

    def update(self, todo_id: int, data: UpdateTodoRequest) -> Optional[TodoEntity]:
        with self._lock:
            existing = self._items.get(todo_id)
            if existing is None:
                return None
            updated = apply_update(existing, data, utc_now())
            self._items[todo_id] = updated
            return clone(updated)

    def delete(self, todo_id: int) -> bool:
        with self._lock:
            return self._items.pop(todo_id, None) is not None

    def toggle_complete(self, todo_id: int) -> Optional[TodoEntity]:
        with self._lock:
            existing = self._items.get(todo_id)
            if existing is None:
                return None
            set_completion(existing, not existing["is_completed"], utc_now())
            return clone(existing)

    def list(self, query: Optional[ListQuery] = None) -> List[TodoEntity]:
        q = query or ListQuery()
        with self._lock:
            items: Iterable[TodoEntity] = self._items.values()

            if q.is_completed is not None:
                items = [t for t in items if t["is_completed"] == q.is_completed]

            if q.priority is not None:
                items = [t for t in items if t["priority"] == q.priority]

            # Return copies to avoid external mutation
            return [clone(t) for t in sort_todos(items)]


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_repository() -> Repository:
    """
    Return the process-wide repository configured by settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository (default)
    """
    settings = get_settings()
    if settings.persistence_backend == "memory":
        logger.info("Using in-memory todo storage")
        return InMemoryRepository()

    from .db import SQLiteRepository

    logger.info("Using SQLite todo storage at %s", settings.sqlite_db_path)
    return SQLiteRepository(settings.sqlite_db_path)
