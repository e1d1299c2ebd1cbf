"""
Auth Client - High-level facade over the credential and session flows.

This is the surface a routing layer calls; it owns no logic of its own.
"""

import time
from typing import Any, Callable, Dict, List, Optional

from authcore.adapters.jwt_auth import JWTTokenIssuer
from authcore.adapters.logging_notifier import LoggingNotifier
from authcore.adapters.memory_store import MemoryCredentialStore
from authcore.adapters.redis_store import RedisCredentialStore
from authcore.config import AuthSettings, StorageBackend
from authcore.domain.account import Account
from authcore.domain.keys import KeyMaterial
from authcore.domain.session import DeviceInfo, Session
from authcore.logging import get_logger
from authcore.ports.credential_store_port import CredentialStorePort
from authcore.ports.notifier_port import NotifierPort
from authcore.ports.token_port import AccessClaims, TokenIssuerPort
from authcore.services.authentication import AuthenticationFlow, LoginResult
from authcore.services.passwords import PasswordHasher
from authcore.services.registration import RegistrationFlow, RegistrationResult
from authcore.services.sessions import SessionManager, TokenPair
from authcore.services.verification import VerificationFlow

logger = get_logger(__name__)


class AuthClient:
    """
    Registration, verification, login, refresh and logout in one object.

    Example:
        from authcore import AuthClient, AuthSettings

        client = AuthClient.from_settings(AuthSettings.from_env())

        client.register("ann@example.com", "ann", "s3cret-pass")
        client.verify(ticket_from_email)

        login = client.login("ann", "s3cret-pass", ip_address="203.0.113.7")
        claims = client.verify_access_token(login.access_token)

        tokens = client.refresh(login.refresh_token)
        client.logout(refresh_token=tokens.refresh_token)
    """

    def __init__(
        self,
        store: CredentialStorePort,
        tokens: TokenIssuerPort,
        notifier: NotifierPort,
        settings: Optional[AuthSettings] = None,
        hasher: Optional[PasswordHasher] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize auth client with adapters.

        Args:
            store: Account and session storage
            tokens: Access token issuer
            notifier: Verification message delivery
            settings: Runtime settings (defaults apply when omitted)
            hasher: Password hasher (built from settings.bcrypt_rounds when omitted)
            sleep: Delivery backoff sleeper
        """
        self._settings = settings or AuthSettings()
        self._store = store
        self._tokens = tokens
        self._hasher = hasher or PasswordHasher(rounds=self._settings.bcrypt_rounds)

        self._sessions = SessionManager(
            store,
            tokens,
            refresh_ttl=self._settings.refresh_token_ttl,
            max_sessions=self._settings.max_sessions,
        )
        self._registration = RegistrationFlow(
            store, notifier, self._hasher, self._settings, sleep=sleep
        )
        self._verification = VerificationFlow(store)
        self._authentication = AuthenticationFlow(
            store, self._hasher, self._sessions, self._settings
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AuthSettings] = None,
        notifier: Optional[NotifierPort] = None,
        store: Optional[CredentialStorePort] = None,
        keys: Optional[KeyMaterial] = None,
    ) -> "AuthClient":
        """
        Wire key material, storage and notifier from settings.

        Args:
            settings: Defaults to ``AuthSettings.from_env()``
            notifier: Defaults to LoggingNotifier (development)
            store: Defaults to the backend named by ``settings.storage_backend``
            keys: Defaults to inline PEM settings, else the key files
        """
        settings = settings or AuthSettings.from_env()

        if keys is None:
            if settings.private_key and settings.public_key:
                keys = KeyMaterial.from_pem(settings.private_key, settings.public_key)
            else:
                keys = KeyMaterial.from_files(settings.private_key_path, settings.public_key_path)

        if store is None:
            if settings.storage_backend == StorageBackend.REDIS:
                store = RedisCredentialStore(prefix=settings.redis_prefix, redis_url=settings.redis_url)
            else:
                store = MemoryCredentialStore()

        if notifier is None:
            logger.warning("notifier_dev_mode", notifier="LoggingNotifier")
            notifier = LoggingNotifier()

        tokens = JWTTokenIssuer(
            keys,
            issuer=settings.issuer,
            audience=settings.audience,
            expires_in=settings.access_token_ttl,
        )
        return cls(store=store, tokens=tokens, notifier=notifier, settings=settings)

    @property
    def settings(self) -> AuthSettings:
        return self._settings

    # Registration & verification

    def register(self, email: str, username: str, password: str) -> RegistrationResult:
        """Create an account and send its verification ticket."""
        return self._registration.register(email, username, password)

    def verify(self, ticket: str) -> Account:
        """Consume a verification ticket."""
        return self._verification.verify(ticket)

    def resend_verification(self, email: str) -> None:
        """Send a fresh ticket if the email belongs to an unverified account."""
        self._registration.resend_verification(email)

    # Sessions

    def login(
        self,
        identifier: str,
        password: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> LoginResult:
        """
        Log in with email or username.

        Returns:
            Access token, refresh token and account summary
        """
        return self._authentication.login(
            identifier, password, DeviceInfo(user_agent=user_agent, ip_address=ip_address)
        )

    def refresh(
        self,
        refresh_token: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> TokenPair:
        """Rotate a refresh token; the one presented stops working."""
        return self._sessions.rotate(
            refresh_token, DeviceInfo(user_agent=user_agent, ip_address=ip_address)
        )

    def logout(self, refresh_token: Optional[str] = None, account_id: Optional[str] = None) -> int:
        """
        Log out one device (``refresh_token``) or every device (``account_id``).

        Returns:
            Number of sessions removed
        """
        removed = 0
        if refresh_token:
            removed += int(self._sessions.revoke(refresh_token))
        if account_id:
            removed += self._sessions.revoke_all(account_id)
        return removed

    def list_sessions(self, account_id: str) -> List[Session]:
        """Live sessions of an account, oldest first."""
        return self._sessions.list_sessions(account_id)

    # Access tokens

    def verify_access_token(self, token: str) -> AccessClaims:
        """Verify an access token offline (signature, issuer, audience, expiry)."""
        return self._tokens.verify_access_token(token)

    def public_key(self) -> str:
        """PEM public key for services verifying tokens themselves."""
        return self._tokens.public_key_pem()

    def jwks(self) -> Dict[str, Any]:
        """Public key as a JWK Set."""
        return self._tokens.jwks()
