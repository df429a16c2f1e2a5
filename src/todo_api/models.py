from __future__ import annotations

from datetime import date, datetime
from enum import IntEnum
from typing import List, Optional, TypedDict


# PUBLIC_INTERFACE
class TodoPriority(IntEnum):
    """Ordinal urgency of a todo. Stored and exchanged as its integer value."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    URGENT = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


DEFAULT_PRIORITY = TodoPriority.MEDIUM


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a Todo item, shared by all storage
    backends.

    Fields:
    - id: Unique integer identifier assigned by the store
    - title: Short title (1..200 chars, trimmed on input via schemas)
    - description: Optional detailed description (<=1000 chars)
    - is_completed: Boolean completion flag
    - created_at: UTC creation timestamp, never changes
    - completed_at: UTC completion timestamp; set iff is_completed
    - due_date: Optional calendar due date
    - priority: TodoPriority
    - tags: Ordered, de-duplicated tag list (empty when none)
    """

    id: int
    title: str
    description: Optional[str]
    is_completed: bool
    created_at: datetime
    completed_at: Optional[datetime]
    due_date: Optional[date]
    priority: TodoPriority
    tags: List[str]
