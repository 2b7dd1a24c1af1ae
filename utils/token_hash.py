"""
Refresh token hashing policy.

Refresh tokens are never stored in plaintext. When REFRESH_TOKEN_SECRET is
configured the digest is HMAC-SHA256 keyed with it, otherwise plain SHA-256.
The mode is resolved once at startup with hashing_mode() and handed to the
CredentialStore; nothing re-reads the configuration per call.
"""
from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Union


def _ensure_str(token) -> str:
    if not isinstance(token, str) or not token:
        raise ValueError("Token must be a non-empty string to hash.")
    return token


@dataclass(frozen=True)
class Keyed:
    secret: str = field(repr=False)

    def digest(self, token: str) -> str:
        token = _ensure_str(token)
        return hmac.new(self.secret.encode("utf-8"), token.encode("utf-8"), hashlib.sha256).hexdigest()


@dataclass(frozen=True)
class Unkeyed:
    def digest(self, token: str) -> str:
        token = _ensure_str(token)
        return hashlib.sha256(token.encode("utf-8")).hexdigest()


HashingMode = Union[Keyed, Unkeyed]


def hashing_mode(secret: str | None) -> HashingMode:
    """Pick the hashing variant for a (possibly empty) keying secret."""
    if secret:
        return Keyed(secret)
    return Unkeyed()
