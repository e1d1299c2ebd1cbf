"""
Notifier Port - Interface for delivering verification messages.

Implementations:
- LoggingNotifier: Logs instead of sending (development)
- SMTPNotifier: Email over SMTP
- WebhookNotifier: JSON POST to a delivery service
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

VERIFICATION_TEMPLATE = "verify-email"


class NotifierPort(ABC):
    """Port: Deliver templated messages to an address."""

    @abstractmethod
    def send(self, destination: str, template_id: str, template_data: Dict[str, Any]) -> None:
        """
        Deliver a message.

        Args:
            destination: Address (email) to deliver to
            template_id: Which message to render (e.g. "verify-email")
            template_data: Values the template needs

        Raises:
            NotificationError: If the message could not be delivered
        """
        pass
