"""
Session Manager - Refresh-token lifecycle.

Mints opaque refresh tokens, stores only their hashes, rotates them on every
use, caps concurrent sessions per account and sweeps expired entries lazily.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from authcore.domain.account import Account
from authcore.domain.session import DeviceInfo, Session, hash_refresh_token, mint_refresh_token
from authcore.errors import TokenExpiredError, TokenInvalidError, TokenRevokedError
from authcore.logging import get_logger
from authcore.ports.credential_store_port import CredentialStorePort
from authcore.ports.token_port import TokenIssuerPort

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenPair:
    """Tokens handed to the caller. The raw refresh token exists only here."""
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
            "token_type": self.token_type,
        }


class SessionManager:
    """
    Refresh-token sessions.

    State machine per session: Active -> Rotated-away | Revoked | Expired,
    all terminal. Every mutation is a single conditional store operation.
    """

    def __init__(
        self,
        store: CredentialStorePort,
        tokens: TokenIssuerPort,
        refresh_ttl: int = 7 * 86400,
        max_sessions: int = 5,
    ):
        """
        Args:
            store: Account/session persistence
            tokens: Access token issuer
            refresh_ttl: Refresh token lifetime in seconds (default 7 days)
            max_sessions: Live sessions allowed per account (default 5)
        """
        self._store = store
        self._tokens = tokens
        self._refresh_ttl = refresh_ttl
        self._max_sessions = max_sessions

    def _issue(self, account: Account, raw_refresh_token: str) -> TokenPair:
        access_token = self._tokens.issue_access_token(
            account.account_id, account.email, account.username
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=raw_refresh_token,
            expires_in=self._tokens.expires_in,
        )

    def open_session(self, account: Account, device: Optional[DeviceInfo] = None) -> TokenPair:
        """
        Start a new session for an authenticated account.

        Purges expired sessions, evicts the oldest live ones if the account is
        at its cap, then stores the hash of a freshly minted refresh token.
        """
        now = datetime.now(timezone.utc)
        device = device or DeviceInfo()

        self._store.purge_expired_sessions(account.account_id, now)

        raw, token_hash = mint_refresh_token()
        session = Session.create(token_hash, ttl=self._refresh_ttl, device=device)
        evicted = self._store.add_session(account.account_id, session, self._max_sessions, now)
        if evicted:
            logger.info(
                "sessions_evicted",
                account_id=account.account_id,
                count=len(evicted),
                max_sessions=self._max_sessions,
            )

        return self._issue(account, raw)

    def rotate(self, raw_refresh_token: str, device: Optional[DeviceInfo] = None) -> TokenPair:
        """
        Exchange a refresh token for a new access token and a new refresh token.

        The presented token stops working the moment this succeeds.

        Raises:
            TokenInvalidError: Unknown token, or already rotated away
            TokenRevokedError: Session was revoked
            TokenExpiredError: Session expired (it is removed)
        """
        device = device or DeviceInfo()
        if not raw_refresh_token:
            raise TokenInvalidError()

        now = datetime.now(timezone.utc)
        token_hash = hash_refresh_token(raw_refresh_token)

        found = self._store.find_session(token_hash)
        if found is None:
            logger.warning("refresh_unknown_token", ip_address=device.ip_address)
            raise TokenInvalidError()
        account, session = found

        if session.revoked:
            logger.warning(
                "refresh_revoked_token",
                account_id=account.account_id,
                ip_address=device.ip_address,
            )
            raise TokenRevokedError()

        if session.is_expired(now):
            self._store.remove_session(token_hash)
            logger.info("refresh_expired_token", account_id=account.account_id)
            raise TokenExpiredError()

        if session.ip_address and device.ip_address and session.ip_address != device.ip_address:
            # Logged only; an address change never blocks rotation.
            logger.warning(
                "refresh_ip_changed",
                account_id=account.account_id,
                previous_ip=session.ip_address,
                ip_address=device.ip_address,
            )

        raw, new_hash = mint_refresh_token()
        new_session = Session.create(
            new_hash,
            ttl=self._refresh_ttl,
            device=DeviceInfo(
                user_agent=device.user_agent or session.user_agent,
                ip_address=device.ip_address or session.ip_address,
            ),
        )
        if not self._store.replace_session(account.account_id, token_hash, new_session):
            logger.warning(
                "refresh_replay_detected",
                account_id=account.account_id,
                ip_address=device.ip_address,
            )
            raise TokenInvalidError()

        self._store.purge_expired_sessions(account.account_id, now)
        logger.info("refresh_rotated", account_id=account.account_id)

        return self._issue(account, raw)

    def revoke(self, raw_refresh_token: str) -> bool:
        """
        Log out one device.

        Returns:
            True if a session was removed
        """
        if not raw_refresh_token:
            return False
        removed = self._store.remove_session(hash_refresh_token(raw_refresh_token))
        if removed:
            logger.info("session_revoked")
        return removed

    def revoke_all(self, account_id: str) -> int:
        """
        Log out every device of an account.

        Returns:
            Number of sessions removed
        """
        count = self._store.remove_sessions(account_id)
        logger.info("sessions_revoked_all", account_id=account_id, count=count)
        return count

    def list_sessions(self, account_id: str) -> List[Session]:
        """Live (non-expired, non-revoked) sessions, oldest first."""
        now = datetime.now(timezone.utc)
        return [s for s in self._store.list_sessions(account_id) if s.is_valid(now)]
