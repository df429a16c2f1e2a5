from __future__ import annotations

import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status

from ..errors import NotFoundError
from ..models import TodoEntity, TodoPriority
from ..repositories import ListQuery, Repository, get_repository
from ..schemas import CreateTodoRequest, ErrorResponse, TodoResponse, UpdateTodoRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/todos",
    tags=["todos"],
)

# Ids beyond SQLite's signed 64-bit INTEGER can never exist
MAX_TODO_ID = 2**63 - 1
TodoId = Annotated[int, Path(alias="id", ge=1, le=MAX_TODO_ID, description="Todo item ID")]

_NOT_FOUND = {"model": ErrorResponse, "description": "Todo not found"}
_INVALID = {"model": ErrorResponse, "description": "Validation error"}


def _get_repo(repo: Repository = Depends(get_repository)) -> Repository:
    """
    Dependency wrapper for repository to keep signatures clean.
    """
    return repo


def _found(todo: Optional[TodoEntity], todo_id: int) -> TodoResponse:
    if todo is None:
        raise NotFoundError("Todo", todo_id)
    return TodoResponse.from_entity(todo)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoResponse],
    summary="List Todos",
    description=(
        "List todos with optional filters.\n\n"
        "Query parameters:\n"
        "- isCompleted: filter by completion status\n"
        "- priority: filter by priority (0=Low .. 3=Urgent)\n\n"
        "Results are ordered incomplete first, then by priority (highest first), "
        "then by due date (undated last), then newest first."
    ),
    responses={400: _INVALID},
)
def list_todos(
    is_completed: Optional[bool] = Query(None, alias="isCompleted", description="Filter by completion status"),
    priority: Optional[int] = Query(None, ge=0, le=3, description="Filter by priority (0-3)"),
    repo: Repository = Depends(_get_repo),
) -> List[TodoResponse]:
    """
    List todos matching the filters, in display order.
    """
    logger.info("Listing todos with filters - isCompleted: %s, priority: %s", is_completed, priority)
    query = ListQuery(
        is_completed=is_completed,
        priority=TodoPriority(priority) if priority is not None else None,
    )
    return [TodoResponse.from_entity(t) for t in repo.list(query)]


# PUBLIC_INTERFACE
@router.get(
    "/{id}",
    response_model=TodoResponse,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={404: _NOT_FOUND},
)
def get_todo(todo_id: TodoId, repo: Repository = Depends(_get_repo)) -> TodoResponse:
    """
    Retrieve a single Todo item by its ID.
    """
    logger.info("Getting todo with ID: %s", todo_id)
    return _found(repo.get(todo_id), todo_id)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item and return the created resource.",
    responses={400: _INVALID},
)
def create_todo(
    payload: CreateTodoRequest,
    request: Request,
    response: Response,
    repo: Repository = Depends(_get_repo),
) -> TodoResponse:
    """
    Create a new Todo. The Location header points at the new resource.
    """
    logger.info("Creating new todo with title: %s", payload.title)
    created = TodoResponse.from_entity(repo.create(payload))
    response.headers["Location"] = str(request.url_for("get_todo", id=created.id))
    return created


# PUBLIC_INTERFACE
@router.put(
    "/{id}",
    response_model=TodoResponse,
    summary="Update Todo",
    description=(
        "Update an existing Todo item. Only the fields present in the body are changed; "
        "null clears description, dueDate and tags."
    ),
    responses={400: _INVALID, 404: _NOT_FOUND},
)
def update_todo(todo_id: TodoId, payload: UpdateTodoRequest, repo: Repository = Depends(_get_repo)) -> TodoResponse:
    """
    Partial update of a Todo item.
    """
    logger.info("Updating todo with ID: %s", todo_id)
    return _found(repo.update(todo_id, payload), todo_id)


# PUBLIC_INTERFACE
@router.delete(
    "/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Todo",
    description="Delete a Todo item by ID.",
    responses={404: _NOT_FOUND},
)
def delete_todo(todo_id: TodoId, repo: Repository = Depends(_get_repo)) -> Response:
    """
    Delete a Todo. Returns 204 on success, 404 if not found.
    """
    logger.info("Deleting todo with ID: %s", todo_id)
    if not repo.delete(todo_id):
        raise NotFoundError("Todo", todo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.patch(
    "/{id}/toggle",
    response_model=TodoResponse,
    summary="Toggle Todo",
    description="Flip the completion status of a Todo item.",
    responses={404: _NOT_FOUND},
)
def toggle_todo(todo_id: TodoId, repo: Repository = Depends(_get_repo)) -> TodoResponse:
    """
    Toggle completion; completedAt is set when completing and cleared when reopening.
    """
    logger.info("Toggling completion status for todo with ID: %s", todo_id)
    return _found(repo.toggle_complete(todo_id), todo_id)
