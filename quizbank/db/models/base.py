from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for all quiz bank models."""


def utcnow() -> datetime:
    """Naive UTC timestamp with microsecond precision."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
