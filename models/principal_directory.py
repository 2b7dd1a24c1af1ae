"""
Read-only view of the users table used by the credential subsystem.

Only find_by_email_for_auth() exposes the password hash, and only to the
login path; everything else sees a Principal projection.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import func, select

from models.user import User
from utils.security import hash_password, verify_password


@dataclass(frozen=True)
class Principal:
    id: int
    email: str
    role: str
    department_id: Optional[int] = None

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(id=user.id, email=user.email, role=user.role, department_id=user.department_id)


def normalize_email(email: str) -> str:
    return email.strip().lower() if isinstance(email, str) else email


class PrincipalDirectory:
    def __init__(self, storage):
        self._storage = storage

    def find_by_id(self, principal_id: int) -> Optional[Principal]:
        with self._storage.unit_of_work() as session:
            user = session.get(User, principal_id)
            return Principal.from_user(user) if user else None

    def find_by_email_for_auth(self, email: str) -> Optional[Tuple[Principal, str]]:
        """Return (principal, password_hash) for login, or None."""
        normalized = normalize_email(email)
        with self._storage.unit_of_work() as session:
            user = session.scalar(select(User).where(func.lower(User.email) == normalized))
            if user is None:
                return None
            return Principal.from_user(user), user.password_hash

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        return verify_password(password, password_hash)

    def add_user(self, email: str, password: str, role: str = "employee",
                 department_id: Optional[int] = None, user_id: Optional[int] = None) -> Principal:
        """Bootstrap helper for operators and tests; not an HTTP endpoint."""
        user = User(
            id=user_id,
            email=normalize_email(email),
            password_hash=hash_password(password),
            role=role,
            department_id=department_id,
        )
        with self._storage.unit_of_work() as session:
            session.add(user)
            session.flush()
            return Principal.from_user(user)
