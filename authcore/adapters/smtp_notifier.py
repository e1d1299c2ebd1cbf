"""
SMTP Notifier - Verification email over SMTP.

Supports STARTTLS (port 587) and implicit TLS (port 465). SMTP and socket
failures are translated into NotificationError reasons so the registration
flow can decide whether another attempt makes sense.
"""

import smtplib
import socket
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional, Tuple

from authcore.errors import NotificationError
from authcore.logging import get_logger
from authcore.ports.notifier_port import VERIFICATION_TEMPLATE, NotifierPort

logger = get_logger(__name__)


def render_verification(data: Dict[str, Any], product_name: str = "authCore") -> Tuple[str, str, str]:
    """
    Render the verification message.

    Returns:
        (subject, text_body, html_body)
    """
    url = data["verification_url"]
    username = data.get("username", "")
    subject = f"Verify your {product_name} email address"

    text_body = (
        f"Hello {username},\n\n"
        f"Please confirm your email address by opening the link below:\n\n"
        f"{url}\n\n"
        f"The link expires at {data.get('expires_at', '')}.\n"
        f"If you did not create an account, you can ignore this email.\n"
    )

    html_body = f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body>
    <h1>Verify your email address</h1>
    <p>Hello {username},</p>
    <p>Please confirm your email address by clicking the link below:</p>
    <p><a href="{url}">Verify Email</a></p>
    <p>The link expires at {data.get('expires_at', '')}.</p>
    <p>If the link doesn't work, copy and paste this URL: {url}</p>
</body>
</html>
"""
    return subject, text_body, html_body


class SMTPNotifier(NotifierPort):
    """
    SMTP delivery.

    Failure mapping:
    - connection refused / DNS failure -> ``unreachable`` (retryable)
    - socket timeout -> ``timeout`` (retryable)
    - recipient refused -> ``rejected`` (not retryable)
    - bad credentials / sender refused -> ``unavailable`` (not retryable)
    - other SMTP errors -> ``unavailable`` (retryable)
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        from_email: Optional[str] = None,
        from_name: str = "authCore",
        timeout: float = 30.0,
    ):
        """
        Args:
            host: SMTP server
            port: SMTP port
            username: Login user (skips login when unset)
            password: Login password
            use_tls: STARTTLS on a plain connection; False uses implicit TLS
            from_email: Sender address (defaults to username)
            from_name: Sender display name
            timeout: Socket timeout in seconds
        """
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._from_email = from_email or username
        self._from_name = from_name
        self._timeout = timeout

    def _build_message(self, destination: str, template_id: str, data: Dict[str, Any]) -> MIMEMultipart:
        if template_id != VERIFICATION_TEMPLATE:
            raise NotificationError(
                reason="rejected",
                retryable=False,
                message=f"Unknown template: {template_id}",
            )
        subject, text_body, html_body = render_verification(data, self._from_name)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self._from_name} <{self._from_email}>"
        msg["To"] = destination
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def _connect(self, context: ssl.SSLContext) -> smtplib.SMTP:
        if self._use_tls:
            return smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        return smtplib.SMTP_SSL(self._host, self._port, context=context, timeout=self._timeout)

    def send(self, destination: str, template_id: str, template_data: Dict[str, Any]) -> None:
        msg = self._build_message(destination, template_id, template_data)
        context = ssl.create_default_context()

        try:
            with self._connect(context) as server:
                if self._use_tls:
                    server.starttls(context=context)
                if self._username and self._password:
                    server.login(self._username, self._password)
                server.sendmail(self._from_email, destination, msg.as_string())
        except smtplib.SMTPRecipientsRefused as e:
            logger.warning("smtp_recipient_refused", email=destination, error=str(e))
            raise NotificationError(reason="rejected", retryable=False) from e
        except (smtplib.SMTPAuthenticationError, smtplib.SMTPSenderRefused) as e:
            logger.error("smtp_misconfigured", host=self._host, error_type=type(e).__name__)
            raise NotificationError(reason="unavailable", retryable=False) from e
        except smtplib.SMTPConnectError as e:
            logger.warning("smtp_connect_failed", host=self._host, port=self._port, error=str(e))
            raise NotificationError(reason="unreachable") from e
        except smtplib.SMTPException as e:
            logger.warning("smtp_error", host=self._host, error_type=type(e).__name__, error=str(e))
            raise NotificationError(reason="unavailable") from e
        except ssl.SSLError as e:
            logger.error("smtp_ssl_error", host=self._host, port=self._port, error=str(e))
            raise NotificationError(reason="unavailable", retryable=False) from e
        except (socket.timeout, TimeoutError) as e:
            logger.warning("smtp_timeout", host=self._host, port=self._port)
            raise NotificationError(reason="timeout") from e
        except OSError as e:
            logger.warning("smtp_unreachable", host=self._host, port=self._port, error=str(e))
            raise NotificationError(reason="unreachable") from e

        logger.info("smtp_sent", email=destination, template_id=template_id)
