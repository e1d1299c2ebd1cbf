"""
Memory Credential Store - In-memory account and session storage.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from authcore.domain.account import Account, normalize_email
from authcore.domain.session import Session
from authcore.errors import ConcurrentUpdateError, StorageConflictError
from authcore.ports.credential_store_port import CredentialStorePort


class MemoryCredentialStore(CredentialStorePort):
    """
    In-memory credential storage.

    Records are kept as plain dicts and rebuilt on every read, so callers
    never share mutable state with the store. A single re-entrant lock makes
    every operation atomic.

    WARNING: Data is lost on restart and not shared between processes.
    """

    def __init__(self):
        """Initialize in-memory storage."""
        self._lock = threading.RLock()
        self._accounts: Dict[str, Dict[str, Any]] = {}
        self._emails: Dict[str, str] = {}
        self._usernames: Dict[str, str] = {}
        self._tickets: Dict[str, str] = {}
        self._sessions: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._session_index: Dict[str, str] = {}

    # Accounts

    def _load(self, account_id: Optional[str]) -> Optional[Account]:
        if not account_id:
            return None
        data = self._accounts.get(account_id)
        if data is None:
            return None
        account = Account.from_dict(data)
        account.sessions = self._ordered_sessions(account_id)
        return account

    def get(self, account_id: str) -> Optional[Account]:
        with self._lock:
            return self._load(account_id)

    def find_by_email(self, email: str) -> Optional[Account]:
        with self._lock:
            return self._load(self._emails.get(normalize_email(email)))

    def find_by_username(self, username: str) -> Optional[Account]:
        with self._lock:
            return self._load(self._usernames.get(username))

    def find_by_verification_ticket(self, ticket_value: str) -> Optional[Account]:
        with self._lock:
            return self._load(self._tickets.get(ticket_value))

    def create_account(self, account: Account) -> Account:
        with self._lock:
            if account.email in self._emails:
                raise StorageConflictError(field="email")
            if account.username in self._usernames:
                raise StorageConflictError(field="username")

            self._accounts[account.account_id] = account.to_dict()
            self._emails[account.email] = account.account_id
            self._usernames[account.username] = account.account_id
            if account.verification:
                self._tickets[account.verification.value] = account.account_id
            self._sessions[account.account_id] = {}

            return self._load(account.account_id)

    def update_account(self, account: Account) -> Account:
        with self._lock:
            stored = self._accounts.get(account.account_id)
            if stored is None or stored["version"] != account.version:
                raise ConcurrentUpdateError(account.account_id)

            old_ticket = stored.get("verification_token")
            if old_ticket:
                self._tickets.pop(old_ticket, None)

            data = account.to_dict()
            data["version"] = account.version + 1
            data["updated_at"] = datetime.now(timezone.utc).isoformat()
            self._accounts[account.account_id] = data
            if account.verification:
                self._tickets[account.verification.value] = account.account_id

            return self._load(account.account_id)

    def delete_account(self, account_id: str, expected_version: Optional[int] = None) -> bool:
        with self._lock:
            data = self._accounts.get(account_id)
            if data is None:
                return False
            if expected_version is not None and data["version"] != expected_version:
                raise ConcurrentUpdateError(account_id)
            del self._accounts[account_id]

            self._emails.pop(data["email"], None)
            self._usernames.pop(data["username"], None)
            if data.get("verification_token"):
                self._tickets.pop(data["verification_token"], None)
            for token_hash in self._sessions.pop(account_id, {}):
                self._session_index.pop(token_hash, None)

            return True

    # Sessions

    def _ordered_sessions(self, account_id: str) -> List[Session]:
        sessions = [Session.from_dict(s) for s in self._sessions.get(account_id, {}).values()]
        return sorted(sessions, key=lambda s: s.created_at)

    def _drop(self, account_id: str, token_hash: str) -> bool:
        if self._sessions.get(account_id, {}).pop(token_hash, None) is None:
            return False
        self._session_index.pop(token_hash, None)
        return True

    def _insert(self, account_id: str, session: Session):
        self._sessions.setdefault(account_id, {})[session.token_hash] = session.to_dict()
        self._session_index[session.token_hash] = account_id

    def add_session(
        self,
        account_id: str,
        session: Session,
        max_sessions: int,
        now: Optional[datetime] = None,
    ) -> List[Session]:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            if account_id not in self._accounts:
                raise KeyError(account_id)

            live = []
            for existing in self._ordered_sessions(account_id):
                if existing.is_valid(now):
                    live.append(existing)
                else:
                    self._drop(account_id, existing.token_hash)

            evicted = []
            while live and len(live) >= max_sessions:
                oldest = live.pop(0)
                self._drop(account_id, oldest.token_hash)
                evicted.append(oldest)

            self._insert(account_id, session)
            return evicted

    def find_session(self, token_hash: str) -> Optional[Tuple[Account, Session]]:
        with self._lock:
            account_id = self._session_index.get(token_hash)
            if not account_id:
                return None
            data = self._sessions.get(account_id, {}).get(token_hash)
            account = self._load(account_id)
            if data is None or account is None:
                return None
            return account, Session.from_dict(data)

    def replace_session(self, account_id: str, old_hash: str, new_session: Session) -> bool:
        with self._lock:
            if not self._drop(account_id, old_hash):
                return False
            self._insert(account_id, new_session)
            return True

    def remove_session(self, token_hash: str) -> bool:
        with self._lock:
            account_id = self._session_index.get(token_hash)
            if not account_id:
                return False
            return self._drop(account_id, token_hash)

    def remove_sessions(self, account_id: str) -> int:
        with self._lock:
            hashes = list(self._sessions.get(account_id, {}))
            for token_hash in hashes:
                self._drop(account_id, token_hash)
            return len(hashes)

    def purge_expired_sessions(self, account_id: str, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            expired = [s.token_hash for s in self._ordered_sessions(account_id) if s.is_expired(now)]
            for token_hash in expired:
                self._drop(account_id, token_hash)
            return len(expired)

    def list_sessions(self, account_id: str) -> List[Session]:
        with self._lock:
            return self._ordered_sessions(account_id)
