"""
HTTP endpoints for tasks and health checks.

Handlers are plain `def` functions so FastAPI runs them in its threadpool and a
slow database call never blocks other requests.
"""

import logging
import re

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .config import Settings
from .errors import APIError
from .models import Task, TaskCreate, TaskRead, TaskUpdate, parse_priority, parse_status, utcnow
from .store import TaskFilter, TaskStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_INTEGER_RE = re.compile(r"-?[0-9]+")

# `tasks.id` is a 32-bit INTEGER column; LIMIT takes a 64-bit BIGINT.
ID_MIN = -(2**31)
ID_MAX = 2**31 - 1
LIMIT_MAX = 2**63 - 1


def get_store(request: Request) -> TaskStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def parse_task_id(task_id: str) -> int:
    """
    Path parameter dependency.

    Non-numeric ids are rejected with 400. Ids the column cannot hold are
    answered with 404; neither case reaches the store.
    """
    if not _INTEGER_RE.fullmatch(task_id):
        raise APIError(400, "Invalid task ID", f"Expected an integer, got {task_id!r}")
    # Very long digit strings are out of range; int() also refuses them past 4300 digits.
    if len(task_id.lstrip("-").lstrip("0")) > len(str(ID_MAX)):
        raise not_found()
    value = int(task_id)
    if not ID_MIN <= value <= ID_MAX:
        raise not_found()
    return value


def parse_limit(value: str | None) -> int | None:
    if value is None or not _INTEGER_RE.fullmatch(value.strip()):
        return None
    digits = value.strip()
    if len(digits.lstrip("-").lstrip("0")) > len(str(LIMIT_MAX)):
        return None
    limit = int(digits)
    return limit if 0 < limit <= LIMIT_MAX else None


def build_filter(status: str | None, priority: str | None, limit: str | None) -> TaskFilter:
    """
    Translate list query parameters into a store filter.

    Malformed values are dropped, so they widen the result instead of failing.
    """
    return TaskFilter(
        status=parse_status(status),
        priority=parse_priority(priority),
        limit=parse_limit(limit),
    )


def store_failure(settings: Settings, error: str, exc: SQLAlchemyError) -> APIError:
    """Log a store failure and turn it into a 500 response."""
    logger.exception("%s", error)
    details = None if settings.is_production else str(exc)
    return APIError(500, error, details)


def not_found() -> APIError:
    return APIError(404, "Task not found")


@router.get("/tasks", response_model=list[TaskRead])
def list_tasks(
    status: str | None = None,
    priority: str | None = None,
    limit: str | None = None,
    store: TaskStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> list[Task]:
    """List tasks, optionally filtered by status and priority."""
    try:
        return store.find_all(build_filter(status, priority, limit))
    except SQLAlchemyError as exc:
        raise store_failure(settings, "Failed to fetch tasks", exc) from exc


@router.get("/tasks/{task_id}", response_model=TaskRead)
def get_task(
    task_id: int = Depends(parse_task_id),
    store: TaskStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> Task:
    try:
        task = store.find_by_id(task_id)
    except SQLAlchemyError as exc:
        raise store_failure(settings, "Failed to fetch task", exc) from exc
    if task is None:
        raise not_found()
    return task


@router.post("/tasks", response_model=TaskRead, status_code=201)
def create_task(
    body: TaskCreate,
    store: TaskStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> Task:
    """
    Create a task.

    A missing or blank title is rejected. Invalid status/priority fall back to
    their defaults.
    """
    try:
        return store.insert(body)
    except SQLAlchemyError as exc:
        raise store_failure(settings, "Failed to create task", exc) from exc


@router.put("/tasks/{task_id}", response_model=TaskRead)
def update_task(
    body: TaskUpdate,
    task_id: int = Depends(parse_task_id),
    store: TaskStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> Task:
    """
    Update a task.

    Title, description and due date are replaced; status and priority are
    only changed when supplied, and rejected when invalid.
    """
    try:
        task = store.update(task_id, body)
    except SQLAlchemyError as exc:
        raise store_failure(settings, "Failed to update task", exc) from exc
    if task is None:
        raise not_found()
    return task


@router.delete("/tasks/{task_id}", response_model=TaskRead)
def delete_task(
    task_id: int = Depends(parse_task_id),
    store: TaskStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> Task:
    """Delete a task and return it as it was before deletion."""
    try:
        task = store.delete(task_id)
    except SQLAlchemyError as exc:
        raise store_failure(settings, "Failed to delete task", exc) from exc
    if task is None:
        raise not_found()
    return task


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict:
    """Liveness check; does not touch the database."""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "environment": settings.environment,
        "version": __version__,
    }


@router.get("/health/detailed")
def health_detailed(
    store: TaskStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Liveness plus a database connectivity probe. 503 when the probe fails."""
    payload = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "environment": settings.environment,
        "version": __version__,
        "database": "connected",
    }
    try:
        store.ping()
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        payload.update(status="unhealthy", database="disconnected", error="Database connection failed")
        if not settings.is_production:
            payload["details"] = str(exc)
        return JSONResponse(status_code=503, content=payload)
    return payload
