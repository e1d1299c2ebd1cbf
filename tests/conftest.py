"""
Shared fixtures: one RSA key pair per run, cheap bcrypt, a recording notifier.
"""

import threading
from typing import Any, Dict, List, Optional, Tuple

import pytest

from authcore import AuthClient, AuthSettings
from authcore.adapters import JWTTokenIssuer, MemoryCredentialStore
from authcore.domain.keys import KeyMaterial
from authcore.errors import NotificationError
from authcore.ports.notifier_port import NotifierPort
from authcore.services.passwords import PasswordHasher

PASSWORD = "correct-horse-battery"


class RecordingNotifier(NotifierPort):
    """Keeps every delivered message; failures can be queued or made permanent."""

    def __init__(self):
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []
        self.attempts = 0
        self._queued: List[NotificationError] = []
        self._always: Optional[NotificationError] = None
        self._lock = threading.Lock()

    def fail_next(self, count: int = 1, reason: str = "unreachable", retryable: bool = True):
        self._queued.extend(NotificationError(reason=reason, retryable=retryable) for _ in range(count))

    def fail_always(self, reason: str = "unreachable", retryable: bool = True):
        self._always = NotificationError(reason=reason, retryable=retryable)

    def recover(self):
        self._always = None
        self._queued.clear()

    def send(self, destination: str, template_id: str, template_data: Dict[str, Any]) -> None:
        with self._lock:
            self.attempts += 1
            if self._always is not None:
                raise self._always
            if self._queued:
                raise self._queued.pop(0)
            self.sent.append((destination, template_id, dict(template_data)))

    def last_ticket(self, destination: Optional[str] = None) -> str:
        for to, _, data in reversed(self.sent):
            if destination is None or to == destination:
                return data["verification_token"]
        raise AssertionError(f"no message sent to {destination}")


@pytest.fixture(scope="session")
def keys():
    return KeyMaterial.generate()


@pytest.fixture(scope="session")
def other_keys():
    return KeyMaterial.generate()


@pytest.fixture(scope="session")
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def settings():
    return AuthSettings(bcrypt_rounds=4, delivery_backoff=0)


@pytest.fixture
def store():
    return MemoryCredentialStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def tokens(keys, settings):
    return JWTTokenIssuer(
        keys,
        issuer=settings.issuer,
        audience=settings.audience,
        expires_in=settings.access_token_ttl,
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(store, keys, notifier, hasher, sleeps):
    """Build an AuthClient over the shared store/notifier with setting overrides."""

    def _make(**overrides) -> AuthClient:
        settings = AuthSettings(**{"bcrypt_rounds": 4, "delivery_backoff": 0, **overrides})
        tokens = JWTTokenIssuer(
            keys,
            issuer=settings.issuer,
            audience=settings.audience,
            expires_in=settings.access_token_ttl,
        )
        return AuthClient(
            store=store,
            tokens=tokens,
            notifier=notifier,
            settings=settings,
            hasher=hasher,
            sleep=sleeps.append,
        )

    return _make


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def verified_account(client, notifier):
    """A registered and verified account: (account, password)."""
    client.register("ann@example.com", "ann", PASSWORD)
    account = client.verify(notifier.last_ticket("ann@example.com"))
    return account, PASSWORD
