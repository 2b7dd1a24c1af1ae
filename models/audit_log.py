"""
Append-only audit trail for credential mutations.

AuditRecorder.record() writes into the session of the unit of work that
performs the mutation and flushes immediately, so an audit insert that fails
aborts the mutation with it. Entries are never updated or deleted here.
"""
from __future__ import annotations

import logging
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from sqlalchemy.types import Enum as SAEnum

from models.base_model import Base

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    REVOKE_ALL = "REVOKE_ALL"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Actor; NULL for system-initiated actions
    user_id = Column(Integer, nullable=True, index=True)
    action = Column(SAEnum(AuditAction, name="audit_action", native_enum=False), nullable=False)
    target_table = Column(String(64), nullable=False)
    # NULL for set-oriented actions (REVOKE_ALL)
    target_id = Column(Integer, nullable=True)
    old_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AuditLog {self.action} {self.target_table}:{self.target_id}>"


class AuditRecorder:
    def record(self, session, action: AuditAction, target_table: str, target_id=None,
               old_data=None, new_data=None, actor_id=None) -> AuditLog:
        entry = AuditLog(
            user_id=actor_id,
            action=AuditAction(action),
            target_table=target_table,
            target_id=target_id,
            old_data=old_data,
            new_data=new_data,
        )
        session.add(entry)
        session.flush()
        logger.debug("audit %s on %s:%s by %s", entry.action.value, target_table, target_id, actor_id)
        return entry
