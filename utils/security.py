"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Access / refresh JWT creation and verification via PyJWT
- JTI generation for token identifiers

Nothing in here reads flask.current_app: the Signer is built once from an
immutable CredentialSettings and passed to whoever needs it.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from utils.exceptions import SignatureInvalid
from utils.token_hash import HashingMode, Unkeyed

ph = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CredentialSettings:
    """Signing and hashing configuration, fixed for the process lifetime."""
    access_secret: str = field(repr=False)
    refresh_secret: str = field(repr=False)
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    issuer: str = "izin-api"
    algorithm: str = "HS256"
    hashing: HashingMode = field(default_factory=Unkeyed)


class Signer:
    """
    Produces and verifies the two token types.

    Access tokens carry the authorization claims (role, department) and are
    signed with the access secret. Refresh tokens carry only the user id and
    are signed with a separate secret, so leaking one secret does not let an
    attacker mint the other kind.
    """

    def __init__(self, settings: CredentialSettings, clock: Callable[[], datetime] = utcnow):
        self._settings = settings
        self._clock = clock

    @property
    def refresh_ttl(self) -> timedelta:
        return self._settings.refresh_ttl

    def issue_access(self, principal) -> str:
        now = self._clock()
        payload = {
            "id": principal.id,
            "role": principal.role,
            "department_id": principal.department_id,
            "iss": self._settings.issuer,
            "aud": str(principal.id),
            "iat": int(now.timestamp()),
            "exp": int((now + self._settings.access_ttl).timestamp()),
            "jti": generate_jti(),
        }
        return jwt.encode(payload, self._settings.access_secret, algorithm=self._settings.algorithm)

    def issue_refresh(self, principal) -> str:
        now = self._clock()
        payload = {
            "id": principal.id,
            "iat": int(now.timestamp()),
            "exp": int((now + self._settings.refresh_ttl).timestamp()),
            "jti": generate_jti(),
        }
        return jwt.encode(payload, self._settings.refresh_secret, algorithm=self._settings.algorithm)

    def verify_refresh(self, token: str) -> int:
        """Return the user id embedded in a refresh token or raise SignatureInvalid."""
        decoded = self._decode(token, self._settings.refresh_secret)
        return self._principal_id(decoded)

    def verify_access(self, token: str) -> Dict[str, Any]:
        """
        Decode an access token. The audience is the subject's own id, so it can
        only be checked after the signature is known to be good.
        """
        decoded = self._decode(token, self._settings.access_secret, issuer=self._settings.issuer)
        principal_id = self._principal_id(decoded)
        if decoded.get("aud") != str(principal_id):
            raise SignatureInvalid("Invalid token: audience mismatch")
        return decoded

    def _decode(self, token: str, secret: str, issuer: str | None = None) -> Dict[str, Any]:
        if not isinstance(token, str) or not token:
            raise SignatureInvalid("Invalid token: empty")
        options = {"require": ["exp", "id"], "verify_aud": False}
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[self._settings.algorithm],
                issuer=issuer,
                options=options,
            )
        except jwt.ExpiredSignatureError as exc:
            raise SignatureInvalid("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise SignatureInvalid(f"Invalid token: {exc}") from exc

    @staticmethod
    def _principal_id(decoded: Dict[str, Any]) -> int:
        principal_id = decoded.get("id")
        if isinstance(principal_id, bool) or not isinstance(principal_id, int):
            raise SignatureInvalid("Invalid token: bad id claim")
        return principal_id
