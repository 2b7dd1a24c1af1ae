"""
Login, refresh-token rotation, logout and mass revocation.

Rotation order for refresh():
  1. the presented token must match a live stored credential
  2. its signature and expiry must verify (otherwise the row is cleaned up)
  3. the user it names must still exist
  4. the stored credential is deleted before anything new is issued
  5-6. a new pair is issued and its refresh token stored
A token can therefore power at most one successful refresh. If the process
dies between 4 and 6 the user is simply logged out.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable

from models.principal_directory import Principal
from utils.exceptions import (
    InvalidCredentials,
    InvalidToken,
    PrincipalNotFound,
    SignatureInvalid,
    StorageError,
    UnknownPrincipal,
)
from utils.security import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    principal: Principal
    access_token: str
    refresh_token: str


class RotationProtocol:
    def __init__(self, signer, store, directory, clock: Callable[[], datetime] = utcnow):
        self._signer = signer
        self._store = store
        self._directory = directory
        self._clock = clock

    def _issue(self, principal: Principal) -> TokenPair:
        pair = TokenPair(
            access_token=self._signer.issue_access(principal),
            refresh_token=self._signer.issue_refresh(principal),
        )
        expires_at = self._clock() + self._signer.refresh_ttl
        self._store.upsert_for_user(principal.id, pair.refresh_token, expires_at, actor_id=principal.id)
        return pair

    def login(self, email: str, password: str) -> LoginResult:
        found = self._directory.find_by_email_for_auth(email)
        if found is None:
            raise UnknownPrincipal()
        principal, password_hash = found
        if not self._directory.verify_password(password, password_hash):
            logger.info("login rejected for user_id=%s: wrong password", principal.id)
            raise InvalidCredentials()

        pair = self._issue(principal)
        logger.info("login succeeded for user_id=%s", principal.id)
        return LoginResult(principal, pair.access_token, pair.refresh_token)

    def refresh(self, refresh_token: str) -> TokenPair:
        if self._store.find_live(refresh_token) is None:
            raise InvalidToken()

        try:
            principal_id = self._signer.verify_refresh(refresh_token)
        except SignatureInvalid:
            self._discard(refresh_token)
            raise InvalidToken("Token is invalid or expired")

        principal = self._directory.find_by_id(principal_id)
        if principal is None:
            self._discard(refresh_token)
            raise PrincipalNotFound()

        if self._store.delete_by_token(refresh_token, actor_id=principal.id) == 0:
            # Another request consumed this token between lookup and delete
            logger.warning("refresh token for user_id=%s already rotated", principal.id)
            raise InvalidToken()

        pair = self._issue(principal)
        logger.info("refresh token rotated for user_id=%s", principal.id)
        return pair

    def _discard(self, refresh_token: str) -> None:
        """Drop a stored credential that can no longer be honoured."""
        try:
            self._store.delete_by_token(refresh_token)
        except StorageError:
            # Best-effort; the row still expires on its own
            logger.warning("could not discard stale refresh token", exc_info=True)

    def logout(self, refresh_token: str) -> None:
        deleted = self._store.delete_by_token(refresh_token)
        logger.debug("logout removed %d refresh token row(s)", deleted)

    def revoke_all(self, user_id: int, actor_id=None) -> int:
        return self._store.revoke_all_for_user(user_id, actor_id=actor_id)
