"""
Verification Flow - Consumes email verification tickets.
"""

import secrets
from datetime import datetime, timezone

from authcore.domain.account import Account
from authcore.errors import ConcurrentUpdateError, VerificationTicketError
from authcore.logging import get_logger
from authcore.ports.credential_store_port import CredentialStorePort

logger = get_logger(__name__)


class VerificationFlow:
    """
    Single-use ticket consumption.

    Unknown, expired and already-consumed tickets fail identically.
    """

    def __init__(self, store: CredentialStorePort):
        self._store = store

    def verify(self, ticket_value: str) -> Account:
        """
        Mark the ticket's account verified and consume the ticket.

        Raises:
            VerificationTicketError: Ticket unknown, expired, consumed, or
                consumed concurrently by another request
        """
        if not ticket_value:
            raise VerificationTicketError()

        account = self._store.find_by_verification_ticket(ticket_value)
        ticket = account.verification if account else None
        if ticket is None or not secrets.compare_digest(ticket.value, ticket_value):
            logger.info("verification_unknown_ticket")
            raise VerificationTicketError()

        if ticket.is_expired(datetime.now(timezone.utc)):
            logger.info("verification_ticket_expired", account_id=account.account_id)
            raise VerificationTicketError()

        account.mark_verified()
        try:
            account = self._store.update_account(account)
        except ConcurrentUpdateError:
            logger.info("verification_race_lost", account_id=account.account_id)
            raise VerificationTicketError()

        logger.info("account_verified", account_id=account.account_id)
        return account
