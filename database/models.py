"""
SQLAlchemy ORM models for the Spotify token store and the task list.

Column types are the portable SQLAlchemy ones (``Uuid``, ``JSON`` with a
JSONB variant) so the same models run on PostgreSQL and on SQLite.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class SpotifyToken(Base):
    """One Spotify token record per application user."""

    __tablename__ = "spotify_tokens"

    user_id = Column(String(64), primary_key=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    scope = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    order_index = Column(Integer, nullable=False, default=0)
    title = Column(Text, nullable=False, default="")
    description = Column(Text)
    status = Column(String(32), default="todo")
    priority = Column(String(16))
    due_date = Column(DateTime(timezone=True))
    completed = Column(Boolean, nullable=False, default=False)
    metadata_ = Column("metadata", JSON().with_variant(JSONB(), "postgresql"), default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (Index("ix_tasks_user_order", "user_id", "order_index"),)
