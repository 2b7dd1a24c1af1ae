"""
CredentialStore: the only code that reads or writes refresh_tokens.

Every public operation runs in exactly one DBStorage.unit_of_work() and, when
it mutates a row, writes the matching audit entry in that same unit. Plaintext
tokens are hashed on entry and never logged.
"""
from __future__ import annotations

from datetime import datetime
from functools import wraps
import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy import delete, func, literal_column, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.audit_log import AuditAction, AuditRecorder
from models.base_model import as_utc
from models.refresh_token import RefreshToken
from utils.exceptions import RaceRetried, StorageError
from utils.security import utcnow
from utils.token_hash import HashingMode, Keyed

logger = logging.getLogger(__name__)

TARGET_TABLE = RefreshToken.__tablename__

# Dialects with a native INSERT ... ON CONFLICT
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_statement(dialect: str, user_id, token_hash, expires_at):
    """
    INSERT ... ON CONFLICT (user_id) DO UPDATE for dialects that have it, else None.
    Returns the row id; on PostgreSQL also "inserted", true when no row existed.
    """
    make_insert = _UPSERT_INSERTS.get(dialect)
    if make_insert is None:
        return None
    table = RefreshToken.__table__
    stmt = make_insert(table).values(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.user_id],
        set_={
            "token_hash": stmt.excluded.token_hash,
            "expires_at": stmt.excluded.expires_at,
            "updated_at": func.now(),
        },
    )
    if dialect == "postgresql":
        # xmax is 0 only on a freshly inserted tuple
        return stmt.returning(table.c.id, literal_column("(xmax = 0)").label("inserted"))
    return stmt.returning(table.c.id)


def ensure_valid_datetime(value) -> datetime:
    """Accept a datetime or an ISO-8601 string; return an aware UTC datetime."""
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str):
        # fromisoformat() only takes a "Z" suffix from Python 3.11 on
        if value.endswith(("Z", "z")):
            value = value[:-1] + "+00:00"
        try:
            return as_utc(datetime.fromisoformat(value))
        except ValueError:
            pass
    raise ValueError("expires_at must be a datetime or an ISO-8601 string.")


def _storage_errors(operation: str):
    """Turn database failures into StorageError, logged without token material."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except SQLAlchemyError as exc:
                logger.exception("credential store: %s failed", operation)
                raise StorageError(f"{operation} failed") from exc
        return wrapper
    return decorator


class CredentialStore:
    def __init__(self, storage, hashing: HashingMode, audit: Optional[AuditRecorder] = None,
                 clock: Callable[[], datetime] = utcnow):
        self._storage = storage
        self._hashing = hashing
        self._audit = audit or AuditRecorder()
        self._clock = clock

    @property
    def hashing_label(self) -> str:
        return "keyed" if isinstance(self._hashing, Keyed) else "unkeyed"

    def hash_token(self, plaintext_token: str) -> str:
        return self._hashing.digest(plaintext_token)

    def upsert_for_user(self, user_id: int, plaintext_token: str, expires_at, actor_id=None) -> RefreshToken:
        """
        Store the hash of plaintext_token as user_id's only credential,
        replacing any previous one. Audited as CREATE or UPDATE.
        """
        if not user_id:
            raise ValueError("user_id is required")
        if not plaintext_token:
            raise ValueError("token is required")
        expires_at = ensure_valid_datetime(expires_at)
        token_hash = self.hash_token(plaintext_token)

        try:
            record = self._upsert(user_id, token_hash, expires_at, actor_id)
        except RaceRetried:
            logger.info("refresh token upsert for user_id=%s lost a race, retrying as update", user_id)
            record = self._update_after_race(user_id, token_hash, expires_at, actor_id)
        return record

    @_storage_errors("upsert")
    def _upsert(self, user_id, token_hash, expires_at, actor_id) -> RefreshToken:
        try:
            with self._storage.unit_of_work() as session:
                existing = session.scalar(
                    select(RefreshToken).where(RefreshToken.user_id == user_id).with_for_update()
                )
                old_data = existing.to_dict() if existing is not None else None
                record, inserted = self._insert_or_replace(session, existing, user_id, token_hash, expires_at)
                action = AuditAction.CREATE if inserted else AuditAction.UPDATE
                self._audit.record(
                    session, action, TARGET_TABLE, target_id=record.id,
                    old_data=old_data, new_data=record.to_dict(), actor_id=actor_id,
                )
                logger.info("refresh token %s for user_id=%s", action.value.lower(), user_id)
                return record
        except IntegrityError as exc:
            raise RaceRetried() from exc

    def _insert_or_replace(self, session, existing, user_id, token_hash, expires_at) -> Tuple[RefreshToken, bool]:
        """Write the row; return it and whether the statement inserted (not replaced) it."""
        dialect = self._storage.dialect
        stmt = upsert_statement(dialect, user_id, token_hash, expires_at)
        if stmt is not None:
            row = session.execute(stmt).one()
            record = session.get(RefreshToken, row.id, populate_existing=True)
            if dialect == "postgresql":
                # The prior-row read cannot lock a row that does not exist yet
                return record, bool(row.inserted)
            # SQLite runs BEGIN IMMEDIATE, so the prior-row read is authoritative
            return record, existing is None

        # No native upsert: a concurrent insert surfaces as IntegrityError
        if existing is None:
            record = RefreshToken(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
            session.add(record)
        else:
            record = existing
            record.token_hash = token_hash
            record.expires_at = expires_at
        session.flush()
        return record, existing is None

    @_storage_errors("upsert fallback")
    def _update_after_race(self, user_id, token_hash, expires_at, actor_id) -> RefreshToken:
        with self._storage.unit_of_work() as session:
            record = session.scalar(
                select(RefreshToken).where(RefreshToken.user_id == user_id).with_for_update()
            )
            if record is None:
                raise StorageError("upsert fallback found no row to update")
            old_data = record.to_dict()
            record.token_hash = token_hash
            record.expires_at = expires_at
            session.flush()
            self._audit.record(
                session, AuditAction.UPDATE, TARGET_TABLE, target_id=record.id,
                old_data=old_data, new_data=record.to_dict(), actor_id=actor_id,
            )
            return record

    @_storage_errors("find_live")
    def find_live(self, plaintext_token: str) -> Optional[RefreshToken]:
        """
        Return the credential matching plaintext_token if it has not expired.
        Expired and unknown tokens both give None.
        """
        token_hash = self.hash_token(plaintext_token)
        with self._storage.unit_of_work() as session:
            return session.scalar(
                select(RefreshToken).where(
                    RefreshToken.token_hash == token_hash,
                    RefreshToken.expires_at > self._clock(),
                )
            )

    @_storage_errors("delete")
    def delete_by_token(self, plaintext_token: str, actor_id=None) -> int:
        """Delete the credential for plaintext_token. Returns rows deleted (0 or 1)."""
        token_hash = self.hash_token(plaintext_token)
        with self._storage.unit_of_work() as session:
            deleted: List[RefreshToken] = session.scalars(
                delete(RefreshToken).where(RefreshToken.token_hash == token_hash).returning(RefreshToken),
                execution_options={"synchronize_session": False},
            ).all()
            for row in deleted:
                self._audit.record(
                    session, AuditAction.DELETE, TARGET_TABLE, target_id=row.id,
                    old_data=row.to_dict(), new_data=None, actor_id=actor_id,
                )
                logger.info("refresh token deleted for user_id=%s", row.user_id)
            return len(deleted)

    @_storage_errors("revoke_all")
    def revoke_all_for_user(self, user_id: int, actor_id=None) -> int:
        """Expire every credential of user_id immediately. Returns rows affected."""
        if not user_id:
            raise ValueError("user_id is required")
        now = self._clock()
        with self._storage.unit_of_work() as session:
            rows = session.scalars(
                select(RefreshToken).where(RefreshToken.user_id == user_id).with_for_update()
            ).all()
            old_data = [row.to_dict() for row in rows]
            for row in rows:
                row.expires_at = now
            session.flush()
            self._audit.record(
                session, AuditAction.REVOKE_ALL, TARGET_TABLE, target_id=None,
                old_data=old_data, new_data=[row.to_dict() for row in rows], actor_id=actor_id,
            )
            logger.info("revoked %d refresh token(s) for user_id=%s", len(rows), user_id)
            return len(rows)
