"""
Integration tests for the reference notifier adapters.
"""

import json
import smtplib
import socket

import httpx
import pytest
from authcore import AuthClient
from authcore.adapters import LoggingNotifier, SMTPNotifier, WebhookNotifier
from authcore.errors import DeliveryFailedError, NotificationError
from authcore.ports.notifier_port import VERIFICATION_TEMPLATE

DATA = {
    "username": "ann",
    "verification_token": "tkt_123",
    "verification_url": "http://localhost:3000/api/auth/verify?token=tkt_123",
    "expires_at": "2030-01-01T00:00:00+00:00",
}


def _webhook(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return WebhookNotifier("https://notify.example.com/send", client=client, **kwargs)


class TestWebhookNotifier:
    """HTTP delivery and failure classification."""

    def test_send(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(202, json={"queued": True})

        _webhook(handler, api_key="k-123").send("ann@example.com", VERIFICATION_TEMPLATE, DATA)

        assert len(requests) == 1
        request = requests[0]
        assert request.method == "POST"
        assert request.headers["Authorization"] == "Bearer k-123"
        assert json.loads(request.content) == {
            "destination": "ann@example.com",
            "template_id": VERIFICATION_TEMPLATE,
            "data": DATA,
        }

    @pytest.mark.parametrize("status", [500, 503, 429])
    def test_server_errors_retryable(self, status):
        notifier = _webhook(lambda request: httpx.Response(status))
        with pytest.raises(NotificationError) as exc:
            notifier.send("ann@example.com", VERIFICATION_TEMPLATE, DATA)
        assert exc.value.reason == "unavailable"
        assert exc.value.retryable is True

    def test_client_error_not_retryable(self):
        notifier = _webhook(lambda request: httpx.Response(422))
        with pytest.raises(NotificationError) as exc:
            notifier.send("ann@example.com", VERIFICATION_TEMPLATE, DATA)
        assert exc.value.reason == "rejected"
        assert exc.value.retryable is False

    def test_connect_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NotificationError) as exc:
            _webhook(handler).send("ann@example.com", VERIFICATION_TEMPLATE, DATA)
        assert exc.value.reason == "unreachable"
        assert exc.value.retryable is True

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(NotificationError) as exc:
            _webhook(handler).send("ann@example.com", VERIFICATION_TEMPLATE, DATA)
        assert exc.value.reason == "timeout"

    def test_registration_rolls_back_on_outage(self, store, tokens, settings, hasher):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        client = AuthClient(store, tokens, _webhook(handler), settings=settings, hasher=hasher)

        with pytest.raises(DeliveryFailedError) as exc:
            client.register("ann@example.com", "ann", "s3cret-pass")

        assert exc.value.category == "unavailable"
        assert len(calls) == settings.delivery_attempts
        assert store.find_by_email("ann@example.com") is None


class FakeSMTP:
    """Stands in for smtplib.SMTP; records what would be sent."""

    instances = []
    fail_with = None

    def __init__(self, host, port, timeout=None):
        if FakeSMTP.fail_with is not None:
            raise FakeSMTP.fail_with
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in = None
        self.closed = False
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True
        return False

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = user

    def sendmail(self, sender, recipient, message):
        self.messages.append((sender, recipient, message))


class TestSMTPNotifier:
    """SMTP delivery with smtplib replaced by a fake."""

    @pytest.fixture(autouse=True)
    def fake_smtp(self, monkeypatch):
        FakeSMTP.instances = []
        FakeSMTP.fail_with = None
        monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
        self.notifier = SMTPNotifier(
            host="smtp.example.com",
            username="mailer@example.com",
            password="app-password",
        )

    def test_send(self):
        self.notifier.send("ann@example.com", VERIFICATION_TEMPLATE, DATA)

        server = FakeSMTP.instances[0]
        assert server.host == "smtp.example.com"
        assert server.port == 587
        assert server.started_tls
        assert server.logged_in == "mailer@example.com"

        sender, recipient, message = server.messages[0]
        assert sender == "mailer@example.com"
        assert recipient == "ann@example.com"
        assert "Verify your authCore email address" in message
        assert "multipart/alternative" in message
        assert server.closed

    def test_starttls_failure_closes_connection(self, monkeypatch):
        def no_tls(self, context=None):
            raise smtplib.SMTPNotSupportedError("STARTTLS extension not supported by server.")

        monkeypatch.setattr(FakeSMTP, "starttls", no_tls)
        with pytest.raises(NotificationError) as exc:
            self.notifier.send("ann@example.com", VERIFICATION_TEMPLATE, DATA)

        assert exc.value.reason == "unavailable"
        assert FakeSMTP.instances[0].closed
        assert FakeSMTP.instances[0].messages == []

    def test_unknown_template(self):
        with pytest.raises(NotificationError) as exc:
            self.notifier.send("ann@example.com", "password-reset", DATA)
        assert exc.value.reason == "rejected"
        assert exc.value.retryable is False

    def test_recipient_refused(self, monkeypatch):
        def refuse(self, sender, recipient, message):
            raise smtplib.SMTPRecipientsRefused({recipient: (550, b"no such user")})

        monkeypatch.setattr(FakeSMTP, "sendmail", refuse)
        with pytest.raises(NotificationError) as exc:
            self.notifier.send("ann@example.com", VERIFICATION_TEMPLATE, DATA)
        assert exc.value.reason == "rejected"
        assert exc.value.retryable is False

    def test_auth_failure_not_retryable(self, monkeypatch):
        def bad_login(self, user, password):
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

        monkeypatch.setattr(FakeSMTP, "login", bad_login)
        with pytest.raises(NotificationError) as exc:
            self.notifier.send("ann@example.com", VERIFICATION_TEMPLATE, DATA)
        assert exc.value.reason == "unavailable"
        assert exc.value.retryable is False

    @pytest.mark.parametrize(
        "error,reason",
        [
            (ConnectionRefusedError("refused"), "unreachable"),
            (TimeoutError("timed out"), "timeout"),
            (socket.timeout("timed out"), "timeout"),
            (smtplib.SMTPConnectError(421, b"busy"), "unreachable"),
            (smtplib.SMTPServerDisconnected("gone"), "unavailable"),
        ],
    )
    def test_connection_failures_retryable(self, error, reason):
        FakeSMTP.fail_with = error
        with pytest.raises(NotificationError) as exc:
            self.notifier.send("ann@example.com", VERIFICATION_TEMPLATE, DATA)
        assert exc.value.reason == reason
        assert exc.value.retryable is True


class TestLoggingNotifier:
    """Dev-mode notifier keeps an outbox."""

    def test_outbox(self):
        notifier = LoggingNotifier(outbox_size=2)
        notifier.send("a@example.com", VERIFICATION_TEMPLATE, {"verification_token": "t1"})
        notifier.send("b@example.com", VERIFICATION_TEMPLATE, {"verification_token": "t2"})
        notifier.send("c@example.com", VERIFICATION_TEMPLATE, {"verification_token": "t3"})

        assert len(notifier) == 2
        assert notifier.last()[2]["verification_token"] == "t3"
        assert notifier.last("b@example.com")[2]["verification_token"] == "t2"
        assert notifier.last("a@example.com") is None

        notifier.clear()
        assert notifier.last() is None

    def test_drives_registration(self, store, tokens, settings, hasher):
        notifier = LoggingNotifier()
        client = AuthClient(store, tokens, notifier, settings=settings, hasher=hasher)

        client.register("ann@example.com", "ann", "s3cret-pass")
        _, template_id, data = notifier.last("ann@example.com")

        assert template_id == VERIFICATION_TEMPLATE
        assert client.verify(data["verification_token"]).is_verified
