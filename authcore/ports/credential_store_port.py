"""
Credential Store Port - Interface for account and session persistence.

Implementations:
- MemoryCredentialStore: In-process dicts behind a lock (testing, single process)
- RedisCredentialStore: Redis with unique index keys and WATCH/MULTI transactions

Every session operation is a single atomic step against the account's
current session set. Callers never load an account, edit its sessions in
memory and write it back.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Tuple
from datetime import datetime
from authcore.domain.account import Account
from authcore.domain.session import Session


class CredentialStorePort(ABC):
    """Port: Persist accounts and their refresh-token sessions."""

    # Accounts

    @abstractmethod
    def get(self, account_id: str) -> Optional[Account]:
        """
        Get an account by ID.

        Args:
            account_id: Account ID

        Returns:
            Account (with session snapshot) if found, None otherwise
        """
        pass

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[Account]:
        """Find an account by email (case-insensitive)."""
        pass

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[Account]:
        """Find an account by exact username."""
        pass

    def find_by_identifier(self, identifier: str) -> Optional[Account]:
        """
        Find an account by email OR username.

        Args:
            identifier: Email address or username

        Returns:
            Matching account, None otherwise
        """
        if "@" in identifier:
            account = self.find_by_email(identifier)
            if account:
                return account
        return self.find_by_username(identifier)

    @abstractmethod
    def find_by_verification_ticket(self, ticket_value: str) -> Optional[Account]:
        """Find the account whose pending verification ticket has this value."""
        pass

    @abstractmethod
    def create_account(self, account: Account) -> Account:
        """
        Persist a new account.

        Args:
            account: Account to insert

        Returns:
            Stored account

        Raises:
            StorageConflictError: field="email" or field="username" when a unique index rejects it
        """
        pass

    @abstractmethod
    def update_account(self, account: Account) -> Account:
        """
        Conditionally write account fields (never sessions).

        The write succeeds only if the stored version equals account.version.

        Args:
            account: Account carrying the version it was read at

        Returns:
            Stored account with the incremented version

        Raises:
            ConcurrentUpdateError: If the stored version moved on
        """
        pass

    @abstractmethod
    def delete_account(self, account_id: str, expected_version: Optional[int] = None) -> bool:
        """
        Delete an account with its indexes and sessions (registration rollback).

        Args:
            account_id: Account to delete
            expected_version: Delete only if the stored version still equals this

        Returns:
            True if deleted, False if not found

        Raises:
            ConcurrentUpdateError: If expected_version is given and the stored
                version moved on
        """
        pass

    # Sessions

    @abstractmethod
    def add_session(
        self,
        account_id: str,
        session: Session,
        max_sessions: int,
        now: Optional[datetime] = None,
    ) -> List[Session]:
        """
        Atomically insert a session while enforcing the per-account cap.

        Expired and revoked sessions are dropped first, then the oldest live
        sessions are evicted until there is room for the new one.

        Returns:
            Sessions that were evicted to make room (not counting expired ones)
        """
        pass

    @abstractmethod
    def find_session(self, token_hash: str) -> Optional[Tuple[Account, Session]]:
        """
        Look up a session by refresh-token hash.

        Returns:
            (owning account, session) or None
        """
        pass

    @abstractmethod
    def replace_session(self, account_id: str, old_hash: str, new_session: Session) -> bool:
        """
        Atomically remove old_hash and insert new_session (rotation).

        Returns:
            True if rotated, False if old_hash was already gone
        """
        pass

    @abstractmethod
    def remove_session(self, token_hash: str) -> bool:
        """
        Delete one session.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    def remove_sessions(self, account_id: str) -> int:
        """
        Delete every session of an account (global sign-out).

        Returns:
            Number of sessions deleted
        """
        pass

    @abstractmethod
    def purge_expired_sessions(self, account_id: str, now: Optional[datetime] = None) -> int:
        """
        Delete expired sessions of one account.

        Returns:
            Number of sessions deleted
        """
        pass

    @abstractmethod
    def list_sessions(self, account_id: str) -> List[Session]:
        """
        List all stored sessions of an account, oldest first.

        Args:
            account_id: Account ID

        Returns:
            List of sessions (may include expired ones not yet purged)
        """
        pass
