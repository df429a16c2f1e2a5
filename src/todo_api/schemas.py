from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from .models import DEFAULT_PRIORITY, TodoEntity, TodoPriority
from .utils import TAG_DELIMITER, normalize_tags, utc_now

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
TAGS_MAX_LENGTH = 500
# JavaScript's Date.getTimezoneOffset() spans UTC-12..UTC+14
TIMEZONE_OFFSET_LIMIT = 14 * 60

# Shared type for incoming due dates which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[date]:
    """
    Normalize due date input into a calendar date.
    - datetime values and ISO datetime strings keep only their date part.
    - date values and ISO date strings are returned as dates.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            try:
                return datetime.fromisoformat(s).date()
            except ValueError:
                raise PydanticCustomError(
                    "due_date_format",
                    "Due date must be an ISO8601 date or datetime (e.g. '2025-01-31')",
                ) from None

    raise PydanticCustomError(
        "due_date_type", "Due date must be an ISO8601 date or datetime string"
    )


def client_today(timezone_offset: Optional[int]) -> date:
    """
    Return "today" as seen by the caller.

    The offset follows JavaScript's getTimezoneOffset(): minutes to add to
    local time to reach UTC, so it is positive west of UTC. None means UTC.
    """
    now = utc_now()
    if timezone_offset is not None:
        now = now - timedelta(minutes=timezone_offset)
    return now.date()


def _check_title_length(title: str) -> str:
    if len(title) > TITLE_MAX_LENGTH:
        raise PydanticCustomError(
            "title_too_long", "Title must not exceed {max_length} characters", {"max_length": TITLE_MAX_LENGTH}
        )
    return title


def _clean_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    s = value.strip()
    if len(s) > DESCRIPTION_MAX_LENGTH:
        raise PydanticCustomError(
            "description_too_long",
            "Description must not exceed {max_length} characters",
            {"max_length": DESCRIPTION_MAX_LENGTH},
        )
    return s or None


def _check_priority(value: int) -> TodoPriority:
    if not min(TodoPriority) <= value <= max(TodoPriority):
        raise PydanticCustomError("priority_range", "Priority must be between 0 (Low) and 3 (Urgent)")
    return TodoPriority(value)


def _check_timezone_offset(value: Optional[int]) -> Optional[int]:
    if value is not None and abs(value) > TIMEZONE_OFFSET_LIMIT:
        raise PydanticCustomError(
            "timezone_offset_range",
            "Timezone offset must be between -{limit} and {limit} minutes",
            {"limit": TIMEZONE_OFFSET_LIMIT},
        )
    return value


def _clean_tags(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    if any(TAG_DELIMITER in t for t in value):
        raise PydanticCustomError("tag_delimiter", "Tags must not contain commas")
    tags = normalize_tags(value)
    if len(TAG_DELIMITER.join(tags)) > TAGS_MAX_LENGTH:
        raise PydanticCustomError(
            "tags_too_long", "Tags must not exceed {max_length} characters", {"max_length": TAGS_MAX_LENGTH}
        )
    return tags


def _check_due_date(due: Optional[date], info: ValidationInfo, grace_days: int) -> Optional[date]:
    if due is None:
        return None
    earliest = client_today(info.data.get("timezone_offset")) - timedelta(days=grace_days)
    if due < earliest:
        raise PydanticCustomError("due_date_past", "Due date cannot be in the past")
    return due


# PUBLIC_INTERFACE
class CreateTodoRequest(BaseModel):
    """
    Schema for creating a new Todo item.

    Validation rules:
    - title: required, trimmed, at most 200 characters
    - description: optional, trimmed, at most 1000 characters
    - dueDate: not before the caller's today minus one day
    - priority: 0 (Low) .. 3 (Urgent), defaults to Medium
    - tags: ordered set, no commas, at most 500 characters joined
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "dueDate": "2025-02-01",
                "timezoneOffset": -60,
                "priority": 2,
                "tags": ["home", "errands"],
            }
        },
    )

    title: Optional[str] = Field(
        default=None, validate_default=True, description="Short title for the todo item"
    )
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    timezone_offset: Optional[int] = Field(
        default=None,
        description="Client timezone offset in minutes as returned by Date.getTimezoneOffset()",
    )
    due_date: Optional[date] = Field(
        default=None, description="Due date. Accepts an ISO8601 date or datetime; only the date is kept"
    )
    priority: int = Field(default=DEFAULT_PRIORITY, strict=True, description="0=Low, 1=Medium, 2=High, 3=Urgent")
    tags: Optional[List[str]] = Field(default=None, description="Optional list of tags")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        s = (v or "").strip()
        if not s:
            raise PydanticCustomError("title_required", "Title is required")
        return _check_title_length(s)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _clean_description(v)

    @field_validator("timezone_offset")
    @classmethod
    def validate_timezone_offset(cls, v: Optional[int]) -> Optional[int]:
        return _check_timezone_offset(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        """
        Normalize dueDate from str/date/datetime to date.
        """
        return _parse_due_date(v)

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: Optional[date], info: ValidationInfo) -> Optional[date]:
        # One day of grace so a client behind UTC can still pick its own today
        return _check_due_date(v, info, grace_days=1)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: int) -> TodoPriority:
        return _check_priority(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


# PUBLIC_INTERFACE
class UpdateTodoRequest(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only provided fields will be updated. An explicit
    null clears description, dueDate and tags; for the other fields null is
    treated as "not provided".
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "isCompleted": True,
                "priority": 3,
                "dueDate": "2025-02-02",
            }
        },
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    is_completed: Optional[bool] = Field(default=None, description="Completion status flag")
    timezone_offset: Optional[int] = Field(
        default=None,
        description="Client timezone offset in minutes as returned by Date.getTimezoneOffset()",
    )
    due_date: Optional[date] = Field(
        default=None, description="Due date. Accepts an ISO8601 date or datetime; only the date is kept"
    )
    priority: Optional[int] = Field(default=None, strict=True, description="0=Low, 1=Medium, 2=High, 3=Urgent")
    tags: Optional[List[str]] = Field(default=None, description="Replacement tag list")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        s = v.strip()
        if not s:
            raise PydanticCustomError("title_empty", "Title cannot be empty")
        return _check_title_length(s)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _clean_description(v)

    @field_validator("timezone_offset")
    @classmethod
    def validate_timezone_offset(cls, v: Optional[int]) -> Optional[int]:
        return _check_timezone_offset(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return _parse_due_date(v)

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: Optional[date], info: ValidationInfo) -> Optional[date]:
        return _check_due_date(v, info, grace_days=0)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: Optional[int]) -> Optional[TodoPriority]:
        if v is None:
            return None
        return _check_priority(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


# PUBLIC_INTERFACE
class TodoResponse(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": 123,
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "isCompleted": False,
                "createdAt": "2025-01-25T10:15:30.123456Z",
                "completedAt": None,
                "dueDate": "2025-02-01",
                "priority": 2,
                "priorityLabel": "High",
                "tags": ["home", "errands"],
            }
        },
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    is_completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    completed_at: Optional[datetime] = Field(default=None, description="Completion timestamp (UTC)")
    due_date: Optional[date] = Field(default=None, description="Due date")
    priority: int = Field(..., description="0=Low, 1=Medium, 2=High, 3=Urgent")
    priority_label: str = Field(..., description="Human readable priority name")
    tags: List[str] = Field(default_factory=list, description="Tags in insertion order")

    @classmethod
    def from_entity(cls, entity: TodoEntity) -> "TodoResponse":
        priority = TodoPriority(entity["priority"])
        return cls(
            id=entity["id"],
            title=entity["title"],
            description=entity["description"],
            is_completed=entity["is_completed"],
            created_at=entity["created_at"],
            completed_at=entity["completed_at"],
            due_date=entity["due_date"],
            priority=int(priority),
            priority_label=priority.label,
            tags=list(entity["tags"]),
        )


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """
    Error body returned for every non-2xx response.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str = Field(..., description="Human readable error message")
    status_code: int = Field(..., description="HTTP status code, repeated in the body")
    errors: Optional[Dict[str, List[str]]] = Field(
        default=None, description="Field-level validation messages keyed by field name"
    )
    trace_id: Optional[str] = Field(default=None, description="Identifier to correlate with server logs")
