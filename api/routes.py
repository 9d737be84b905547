"""
REST API routes — health probe and the user's task list.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user_id, get_settings
from config.settings import Settings
from database.helpers import create_task, list_tasks, probe_store
from database.session import get_session_factory
from utils.errors import PersistenceFailed

logger = logging.getLogger(__name__)

router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Any:
    """Report which settings are present and whether the store answers."""
    try:
        environment = {
            "has_database_url": bool(settings.database_url),
            "has_jwt_secret": bool(settings.jwt_secret),
            "has_spotify_client_id": bool(settings.spotify_client_id),
            "has_spotify_client_secret": bool(settings.spotify_client_secret),
            "has_spotify_redirect_uri": bool(settings.spotify_redirect_uri),
            "has_token_encryption_key": bool(settings.token_encryption_key),
            "app_env": settings.app_env,
            "deploy_env": settings.deploy_env,
        }
        store_status = await probe_store(get_session_factory(request))
        return {
            "status": "ok",
            "timestamp": _now_iso(),
            "environment": environment,
            "store": store_status,
        }
    except Exception as exc:
        logger.exception("Health check failed")
        return JSONResponse(
            {"status": "error", "error": str(exc), "timestamp": _now_iso()},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


@router.get("/tasks")
async def get_tasks(
    session: AsyncSession = Depends(db_session),
    user_id: str = Depends(get_current_user_id),
) -> Any:
    """List the authenticated user's tasks."""
    try:
        tasks = await list_tasks(session, user_id)
    except PersistenceFailed as exc:
        logger.error("Failed to fetch tasks: %s", exc.message)
        return JSONResponse(
            {"error": "Failed to fetch tasks"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    except Exception:
        logger.exception("Failed to fetch tasks")
        return JSONResponse(
            {"error": "Failed to fetch tasks"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return {"tasks": tasks}


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
async def post_task(
    request: Request,
    session: AsyncSession = Depends(db_session),
    user_id: str = Depends(get_current_user_id),
) -> Any:
    """Create a task owned by the authenticated user."""
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(
            {"error": "Request body must be valid JSON"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    if not isinstance(payload, dict):
        return JSONResponse(
            {"error": "Task payload must be a JSON object"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        task: Dict[str, Any] = await create_task(session, user_id, payload)
    except PersistenceFailed as exc:
        await session.rollback()
        logger.error("Task insert error: %s %s", exc.message, exc.details)
        return JSONResponse(
            {"error": exc.message, "details": exc.details},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    except Exception as exc:
        await session.rollback()
        logger.exception("Failed to create task")
        return JSONResponse(
            {"error": str(exc) or "Unknown error"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return task
