"""
Session Domain Model - Server-side record of one refresh token.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple
from datetime import datetime, timedelta, timezone
from enum import Enum
import hashlib
import secrets
import re

_TOKEN_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


class SessionStatus(Enum):
    """Session lifecycle states. Every non-ACTIVE state is terminal."""
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


@dataclass(frozen=True)
class DeviceInfo:
    """Where a login or refresh request came from."""
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


def hash_refresh_token(raw_token: str) -> str:
    """SHA-256 hex digest; the only form in which refresh tokens are stored."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def mint_refresh_token() -> Tuple[str, str]:
    """
    Mint a new opaque refresh token.

    Returns:
        (raw_token, token_hash) - hand raw_token to the caller once, store only the hash
    """
    raw = secrets.token_urlsafe(48)
    return raw, hash_refresh_token(raw)


@dataclass
class Session:
    """
    Session entity - backs one outstanding refresh token.

    Domain rules:
    - token_hash is a SHA-256 digest, never the bearer secret
    - a session is usable only while not revoked and before expires_at
    - sessions are never extended; rotation replaces them
    """
    token_hash: str
    created_at: datetime
    expires_at: datetime
    last_used_at: Optional[datetime] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    revoked: bool = False

    def __post_init__(self):
        if not _TOKEN_HASH_RE.match(self.token_hash):
            raise ValueError("token_hash must be a SHA-256 hex digest")

    @classmethod
    def create(
        cls,
        token_hash: str,
        ttl: int = 7 * 86400,
        device: Optional[DeviceInfo] = None,
    ) -> "Session":
        """
        Create a new session for an already-hashed refresh token.

        Args:
            token_hash: Hash of the raw refresh token
            ttl: Time-to-live in seconds (default 7 days)
            device: Client user agent / IP

        Returns:
            New session instance
        """
        now = datetime.now(timezone.utc)
        device = device or DeviceInfo()

        return cls(
            token_hash=token_hash,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
            last_used_at=now,
            user_agent=device.user_agent,
            ip_address=device.ip_address,
        )

    @property
    def status(self) -> SessionStatus:
        if self.revoked:
            return SessionStatus.REVOKED
        if self.is_expired():
            return SessionStatus.EXPIRED
        return SessionStatus.ACTIVE

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Check if session is usable (not revoked and not expired)."""
        if self.revoked:
            return False
        return not self.is_expired(now)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "token_hash": self.token_hash,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
            "user_agent": self.user_agent,
            "ip_address": self.ip_address,
            "revoked": self.revoked,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Deserialize from dict."""
        return cls(
            token_hash=data["token_hash"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            last_used_at=datetime.fromisoformat(data["last_used_at"]) if data.get("last_used_at") else None,
            user_agent=data.get("user_agent"),
            ip_address=data.get("ip_address"),
            revoked=data.get("revoked", False),
        )
