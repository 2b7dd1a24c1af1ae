#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixin for the credential API.

- integer primary key plus created_at / updated_at timestamps
- to_dict() that formats timestamps as ISO-8601 and drops SA internals

Notes:
- We use server-side defaults (func.now()) so timestamps are set consistently by the DB.
- For SQLite, func.now() maps to CURRENT_TIMESTAMP (UTC) and values come back naive;
  as_utc() treats such values as UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

# Declarative base for all models
Base = declarative_base()


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite) and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BaseModel:
    """
    Base mixin for all persistent models: id, created_at, updated_at.
    """

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Columns left out of to_dict(); subclasses extend this
    __private_fields__: tuple = ()

    def __str__(self) -> str:
        """Human-friendly representation including id and fields."""
        return f"[{self.__class__.__name__}] ({self.id}) {self.to_dict()}"

    def to_dict(self) -> dict:
        """
        Snapshot of the mapped columns, suitable for JSON (audit data, API output).
        Datetimes are rendered as UTC ISO-8601 strings.
        """
        d = {}
        for column in self.__table__.columns:
            if column.key in self.__private_fields__:
                continue
            value = getattr(self, column.key, None)
            if isinstance(value, datetime):
                value = as_utc(value).isoformat()
            d[column.key] = value
        return d
