"""
Webhook Notifier - Hand messages to an HTTP delivery service.

POSTs ``{"destination", "template_id", "data"}`` as JSON. Useful in front
of transactional mail providers or an internal notification service.
"""

from typing import Any, Dict, Optional

import httpx

from authcore.errors import NotificationError
from authcore.logging import get_logger
from authcore.ports.notifier_port import NotifierPort

logger = get_logger(__name__)


class WebhookNotifier(NotifierPort):
    """
    HTTP notifier.

    Transport errors, 429 and 5xx responses are retryable; any other 4xx
    means the service refused the message and is not.
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            url: Endpoint receiving the JSON payload
            api_key: Sent as a Bearer token when set
            timeout: Request timeout in seconds
            client: Pre-configured httpx client (tests pass one with a MockTransport)
        """
        self._url = url
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = headers

    def send(self, destination: str, template_id: str, template_data: Dict[str, Any]) -> None:
        payload = {
            "destination": destination,
            "template_id": template_id,
            "data": template_data,
        }

        try:
            response = self._client.post(self._url, json=payload, headers=self._headers)
        except httpx.TimeoutException as e:
            logger.warning("webhook_timeout", url=self._url)
            raise NotificationError(reason="timeout") from e
        except httpx.ConnectError as e:
            logger.warning("webhook_unreachable", url=self._url, error=str(e))
            raise NotificationError(reason="unreachable") from e
        except httpx.TransportError as e:
            logger.warning("webhook_transport_error", url=self._url, error_type=type(e).__name__)
            raise NotificationError(reason="unavailable") from e

        status = response.status_code
        if status == 429 or status >= 500:
            logger.warning("webhook_unavailable", url=self._url, status=status)
            raise NotificationError(reason="unavailable")
        if status >= 400:
            logger.warning("webhook_rejected", url=self._url, status=status)
            raise NotificationError(reason="rejected", retryable=False)

        logger.info("webhook_sent", email=destination, template_id=template_id, status=status)

    def close(self):
        self._client.close()
