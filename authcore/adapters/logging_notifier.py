"""
Logging Notifier - Development stand-in for real delivery.

Nothing leaves the process: each message is logged (with sensitive values
redacted) and kept in a bounded in-memory outbox for inspection.
"""

from collections import deque
from typing import Any, Deque, Dict, Optional, Tuple

from authcore.logging import get_logger
from authcore.ports.notifier_port import NotifierPort

logger = get_logger(__name__)


class LoggingNotifier(NotifierPort):
    """
    Dev-mode notifier.

    Usage:
        notifier = LoggingNotifier()
        client = AuthClient.from_settings(settings, notifier=notifier)
        client.register("ann@example.com", "ann", "pw")
        destination, template_id, data = notifier.last()
    """

    def __init__(self, outbox_size: int = 100):
        self._outbox: Deque[Tuple[str, str, Dict[str, Any]]] = deque(maxlen=outbox_size)

    def send(self, destination: str, template_id: str, template_data: Dict[str, Any]) -> None:
        self._outbox.append((destination, template_id, dict(template_data)))
        logger.info(
            "notification_dev_mode",
            email=destination,
            template_id=template_id,
            fields=sorted(template_data),
        )

    def last(self, destination: Optional[str] = None) -> Optional[Tuple[str, str, Dict[str, Any]]]:
        """Most recent message, optionally only those sent to ``destination``."""
        for message in reversed(self._outbox):
            if destination is None or message[0] == destination:
                return message
        return None

    def clear(self):
        self._outbox.clear()

    def __len__(self) -> int:
        return len(self._outbox)
