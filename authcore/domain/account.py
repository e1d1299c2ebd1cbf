"""
Account Domain Model - Identity aggregate.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Any, List, Optional
from datetime import datetime, timedelta, timezone
import re
import secrets
import uuid

from authcore.domain.session import Session

EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,20}$")


def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookup."""
    return email.strip().lower()


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class VerificationTicket:
    """
    One-time proof-of-email token.

    Domain rules:
    - value is random and opaque
    - a ticket past expires_at can never be consumed
    """
    value: str
    expires_at: datetime

    @classmethod
    def issue(cls, ttl: int = 86400, now: Optional[datetime] = None) -> "VerificationTicket":
        """
        Issue a fresh ticket.

        Args:
            ttl: Seconds until the ticket expires (default 24 hours)
            now: Issue time (defaults to current UTC time)
        """
        now = now or datetime.now(timezone.utc)
        return cls(value=secrets.token_urlsafe(32), expires_at=now + timedelta(seconds=ttl))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at


@dataclass
class Account:
    """
    Account entity - one registered identity.

    Domain rules:
    - email and username are globally unique (enforced by the store)
    - email is stored normalized (stripped, lower-case)
    - is_verified only ever goes from False to True
    - version increases on every stored update (optimistic concurrency)
    - sessions is a read snapshot; mutate sessions through the store
    """
    account_id: str
    email: str
    username: str
    password_hash: str
    is_verified: bool = False
    verification: Optional[VerificationTicket] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1
    sessions: List[Session] = field(default_factory=list)

    def __post_init__(self):
        self.email = normalize_email(self.email)
        if not EMAIL_RE.match(self.email):
            raise ValueError("invalid email address")
        if not USERNAME_RE.match(self.username):
            raise ValueError("username must be 3-20 letters, digits or underscores")
        if not self.password_hash:
            raise ValueError("password_hash is required")

    @classmethod
    def create(
        cls,
        email: str,
        username: str,
        password_hash: str,
        ticket_ttl: int = 86400,
    ) -> "Account":
        """
        Create a new unverified account with a pending verification ticket.

        Args:
            email: Email address (normalized here)
            username: Username
            password_hash: Already-hashed password
            ticket_ttl: Verification ticket lifetime in seconds

        Returns:
            New account instance (not yet persisted)
        """
        now = datetime.now(timezone.utc)
        return cls(
            account_id=uuid.uuid4().hex,
            email=email,
            username=username,
            password_hash=password_hash,
            is_verified=False,
            verification=VerificationTicket.issue(ttl=ticket_ttl, now=now),
            created_at=now,
            updated_at=now,
        )

    def reissue_verification(self, ttl: int = 86400) -> VerificationTicket:
        """Replace the pending ticket with a new one."""
        if self.is_verified:
            raise ValueError("account is already verified")
        self.verification = VerificationTicket.issue(ttl=ttl)
        self.updated_at = datetime.now(timezone.utc)
        return self.verification

    def mark_verified(self):
        """Flip to verified and consume the pending ticket."""
        self.is_verified = True
        self.verification = None
        self.updated_at = datetime.now(timezone.utc)

    def active_sessions(self, now: Optional[datetime] = None) -> List[Session]:
        """Sessions in the snapshot that are neither expired nor revoked."""
        return [s for s in self.sessions if s.is_valid(now)]

    def summary(self) -> Dict[str, Any]:
        """Public account summary returned on login."""
        return {
            "id": self.account_id,
            "email": self.email,
            "username": self.username,
        }

    def with_sessions(self, sessions: List[Session]) -> "Account":
        """Copy of this account carrying a session snapshot."""
        return replace(self, sessions=list(sessions))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (sessions are stored separately)."""
        return {
            "account_id": self.account_id,
            "email": self.email,
            "username": self.username,
            "password_hash": self.password_hash,
            "is_verified": self.is_verified,
            "verification_token": self.verification.value if self.verification else None,
            "verification_expires_at": (
                self.verification.expires_at.isoformat() if self.verification else None
            ),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        """Deserialize from dict."""
        verification = None
        if data.get("verification_token"):
            verification = VerificationTicket(
                value=data["verification_token"],
                expires_at=datetime.fromisoformat(data["verification_expires_at"]),
            )
        return cls(
            account_id=data["account_id"],
            email=data["email"],
            username=data["username"],
            password_hash=data["password_hash"],
            is_verified=data.get("is_verified", False),
            verification=verification,
            created_at=_parse_dt(data.get("created_at")) or datetime.now(timezone.utc),
            updated_at=_parse_dt(data.get("updated_at")) or datetime.now(timezone.utc),
            version=data.get("version", 1),
        )
