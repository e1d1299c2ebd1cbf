"""
Registration Flow - Account creation and verification delivery.

Creation is race-safe through the store's unique indexes; a verification
message that cannot be delivered rolls the new account back so the email
and username are free to be claimed again.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from authcore.config import AuthSettings, EnumerationPolicy
from authcore.domain.account import Account, normalize_email
from authcore.errors import (
    ConcurrentUpdateError,
    ConflictError,
    DeliveryFailedError,
    InternalError,
    NotificationError,
    StorageConflictError,
)
from authcore.logging import get_logger
from authcore.ports.credential_store_port import CredentialStorePort
from authcore.ports.notifier_port import VERIFICATION_TEMPLATE, NotifierPort
from authcore.services.passwords import PasswordHasher

logger = get_logger(__name__)

REGISTERED_MESSAGE = "Registration received; please check your email to verify your account"


@dataclass(frozen=True)
class RegistrationResult:
    """
    Acknowledgement of a registration.

    Under the conceal policy every acknowledgement is identical and
    ``account_id`` is always None.
    """
    account_id: Optional[str]
    message: str = REGISTERED_MESSAGE
    verification_sent: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_id": self.account_id,
            "message": self.message,
            "verification_sent": self.verification_sent,
        }


class RegistrationFlow:
    """Registers accounts and delivers their verification tickets."""

    def __init__(
        self,
        store: CredentialStorePort,
        notifier: NotifierPort,
        hasher: PasswordHasher,
        settings: Optional[AuthSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            store: Account persistence
            notifier: Verification message delivery
            hasher: Password hasher
            settings: Ticket TTL, delivery retries and enumeration policy
            sleep: Backoff sleeper (injectable for tests)
        """
        self._store = store
        self._notifier = notifier
        self._hasher = hasher
        self._settings = settings or AuthSettings()
        self._sleep = sleep

    @property
    def _conceal(self) -> bool:
        return self._settings.enumeration_policy == EnumerationPolicy.CONCEAL

    def register(self, email: str, username: str, password: str) -> RegistrationResult:
        """
        Register a new account and send its verification ticket.

        An unverified account that already owns the email gets a fresh ticket
        instead; the password supplied here is ignored for it.

        Raises:
            ConflictError: Email or username taken (disclose policy only)
            DeliveryFailedError: Verification could not be delivered. A new
                account is rolled back; an existing unverified one is kept
            InternalError: Delivery failed and the rollback failed too
            ValueError: Malformed email or username
        """
        email = normalize_email(email)
        try:
            return self._register_once(email, username, password)
        except StorageConflictError as e:
            logger.info("registration_race_retry", field=e.field)

        try:
            return self._register_once(email, username, password)
        except StorageConflictError as e:
            field = e.field if e.field in ("email", "username") else "email"
            logger.warning("registration_race_lost", field=field)
            return self._duplicate(field)

    def _register_once(self, email: str, username: str, password: str) -> RegistrationResult:
        existing = self._store.find_by_email(email)
        if existing is not None:
            if existing.is_verified:
                return self._duplicate("email", password)
            return self._refresh_pending(existing)

        if self._store.find_by_username(username) is not None:
            return self._duplicate("username", password)

        account = Account.create(
            email=email,
            username=username,
            password_hash=self._hasher.hash(password),
            ticket_ttl=self._settings.verification_ticket_ttl,
        )
        account = self._store.create_account(account)
        logger.info("account_created", account_id=account.account_id)

        try:
            self._deliver(account)
        except NotificationError as e:
            return self._rollback(account, e)

        return self._acknowledge(account.account_id, verification_sent=True)

    def _duplicate(self, field: str, password: Optional[str] = None) -> RegistrationResult:
        logger.info("registration_conflict", field=field)
        if self._conceal:
            if password is not None:
                # Same bcrypt cost as a fresh registration.
                self._hasher.hash(password)
            return self._acknowledge(None)
        raise ConflictError(field=field)

    def _acknowledge(self, account_id: Optional[str], verification_sent: bool = True) -> RegistrationResult:
        if self._conceal:
            return RegistrationResult(account_id=None)
        return RegistrationResult(account_id=account_id, verification_sent=verification_sent)

    def _refresh_pending(self, account: Account) -> RegistrationResult:
        """Re-registration of an unverified email: new ticket, delivered with retries, never rolled back."""
        account.reissue_verification(ttl=self._settings.verification_ticket_ttl)
        account = self._store.update_account(account)
        logger.info("verification_reissued", account_id=account.account_id)

        try:
            self._deliver(account)
        except NotificationError as e:
            logger.warning(
                "verification_resend_failed",
                account_id=account.account_id,
                reason=e.reason,
            )
            raise DeliveryFailedError(e.reason) from e

        return self._acknowledge(account.account_id, verification_sent=True)

    def _rollback(self, account: Account, error: NotificationError) -> RegistrationResult:
        """
        Delete an account whose verification could not be delivered.

        The delete is conditional on the version the account was created at.
        If another registration has re-ticketed it meanwhile, that request owns
        delivery and the account is kept.
        """
        try:
            self._store.delete_account(account.account_id, expected_version=account.version)
        except ConcurrentUpdateError:
            logger.warning(
                "registration_rollback_skipped",
                account_id=account.account_id,
                reason=error.reason,
            )
            return self._acknowledge(account.account_id, verification_sent=False)
        except Exception as e:
            logger.error(
                "registration_rollback_failed",
                account_id=account.account_id,
                error=str(e),
            )
            raise InternalError() from e

        logger.warning(
            "registration_rolled_back",
            account_id=account.account_id,
            reason=error.reason,
        )
        raise DeliveryFailedError(error.reason) from error

    def _template_data(self, account: Account) -> Dict[str, Any]:
        ticket = account.verification
        return {
            "username": account.username,
            "verification_token": ticket.value,
            "verification_url": self._settings.verification_url(ticket.value),
            "expires_at": ticket.expires_at.isoformat(),
        }

    def _send_once(self, account: Account):
        try:
            self._notifier.send(account.email, VERIFICATION_TEMPLATE, self._template_data(account))
        except NotificationError:
            raise
        except Exception as e:
            logger.error("notifier_unexpected_error", account_id=account.account_id, error=str(e))
            raise NotificationError(reason="unknown", message=str(e)) from e

    def _deliver(self, account: Account):
        """
        Send the verification message with bounded retries.

        Raises:
            NotificationError: The last failure once attempts are exhausted,
                or the first non-retryable one
        """
        attempts = self._settings.delivery_attempts
        for attempt in range(1, attempts + 1):
            try:
                self._send_once(account)
            except NotificationError as e:
                logger.warning(
                    "verification_delivery_failed",
                    account_id=account.account_id,
                    attempt=attempt,
                    max_attempts=attempts,
                    reason=e.reason,
                    retryable=e.retryable,
                )
                if not e.retryable or attempt == attempts:
                    raise
                self._sleep(self._settings.delivery_backoff * attempt)
            else:
                logger.info("verification_sent", account_id=account.account_id, attempt=attempt)
                return

    def resend_verification(self, email: str) -> None:
        """
        Issue and send a new ticket for an unverified account.

        Always returns silently, whether or not the account exists; a single
        delivery attempt is made and failures are only logged.
        """
        account = self._store.find_by_email(normalize_email(email))
        if account is None or account.is_verified:
            logger.info("verification_resend_skipped")
            return

        account.reissue_verification(ttl=self._settings.verification_ticket_ttl)
        try:
            account = self._store.update_account(account)
        except ConcurrentUpdateError:
            logger.info("verification_resend_conflict", account_id=account.account_id)
            return

        try:
            self._send_once(account)
        except NotificationError as e:
            logger.warning(
                "verification_resend_failed",
                account_id=account.account_id,
                reason=e.reason,
            )
            return
        logger.info("verification_resent", account_id=account.account_id)
