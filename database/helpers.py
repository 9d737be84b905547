"""
Database helper functions — user-scoped task reads/writes and the store probe.

"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import Task
from utils.errors import PersistenceFailed

logger = logging.getLogger(__name__)

# Fields the store generates or stamps itself; caller-supplied values are dropped.
_SERVER_FIELDS = frozenset({"id", "user_id", "created_at", "updated_at"})

# Payload key → mapped attribute, for every column a caller may set.
_WRITABLE_FIELDS = {
    col.name: attr.key
    for attr in Task.__mapper__.column_attrs
    for col in attr.columns
    if col.name not in _SERVER_FIELDS
}


def _store_error(exc: SQLAlchemyError) -> PersistenceFailed:
    orig = exc.orig if isinstance(exc, DBAPIError) else None
    lines = str(orig or exc).strip().splitlines()
    message = lines[0] if lines else type(exc).__name__
    return PersistenceFailed(message, details=str(exc))


def _serialize(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def task_to_dict(task: Task) -> Dict[str, Any]:
    return {
        col.name: _serialize(getattr(task, attr.key))
        for attr in Task.__mapper__.column_attrs
        for col in attr.columns
    }


def _coerce(field: str, value: Any) -> Any:
    if field == "due_date" and isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError as exc:
            raise PersistenceFailed(
                f'invalid input syntax for type timestamp: "{value}"',
                details=f"column: {field}",
            ) from exc
    return value


async def list_tasks(session: AsyncSession, user_id: str) -> List[Dict[str, Any]]:
    """Return the user's tasks ordered by ``order_index`` ascending."""
    try:
        result = await session.execute(
            select(Task)
            .where(Task.user_id == user_id)
            .order_by(Task.order_index.asc(), Task.created_at.asc())
        )
    except SQLAlchemyError as exc:
        logger.error("list_tasks failed for user %s: %s", user_id, exc)
        raise _store_error(exc) from exc
    return [task_to_dict(t) for t in result.scalars().all()]


async def create_task(
    session: AsyncSession,
    user_id: str,
    payload: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Insert a task owned by *user_id* and return it with generated fields.

    Ownership always comes from the session, never from *payload*.
    """
    values: Dict[str, Any] = {}
    for key, value in payload.items():
        if key in _SERVER_FIELDS:
            continue
        attr = _WRITABLE_FIELDS.get(key)
        if attr is None:
            raise PersistenceFailed(
                f"Could not find the '{key}' column of 'tasks'",
                details=f"writable columns: {', '.join(sorted(_WRITABLE_FIELDS))}",
            )
        values[attr] = _coerce(key, value)

    task = Task(**values, user_id=user_id)
    session.add(task)
    try:
        await session.flush()
        await session.refresh(task)
    except SQLAlchemyError as exc:
        logger.error("create_task failed for user %s: %s", user_id, exc)
        raise _store_error(exc) from exc

    logger.info("Created task %s for user %s", task.id, user_id)
    return task_to_dict(task)


async def probe_store(factory: Optional[async_sessionmaker[AsyncSession]]) -> str:
    """Run ``SELECT 1`` and describe the outcome for /health."""
    if factory is None:
        return "not_configured"
    try:
        async with factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        return f"error: {exc}"
    return "connected"
