"""
Authentication Flow - Password login.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from authcore.config import AuthSettings, EnumerationPolicy
from authcore.domain.session import DeviceInfo
from authcore.errors import EmailNotVerifiedError, InvalidCredentialsError
from authcore.logging import get_logger
from authcore.ports.credential_store_port import CredentialStorePort
from authcore.services.passwords import PasswordHasher
from authcore.services.sessions import SessionManager, TokenPair

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoginResult:
    """Tokens plus the public account summary."""
    tokens: TokenPair
    account: Dict[str, Any]

    @property
    def access_token(self) -> str:
        return self.tokens.access_token

    @property
    def refresh_token(self) -> str:
        return self.tokens.refresh_token

    @property
    def expires_in(self) -> int:
        return self.tokens.expires_in

    @property
    def token_type(self) -> str:
        return self.tokens.token_type

    def to_dict(self) -> Dict[str, Any]:
        data = self.tokens.to_dict()
        data["account"] = dict(self.account)
        return data


class AuthenticationFlow:
    """
    Email-or-username plus password login.

    The bcrypt comparison runs on every path, against a throwaway hash when
    the account does not exist, so response time does not reveal whether an
    identifier is registered.
    """

    def __init__(
        self,
        store: CredentialStorePort,
        hasher: PasswordHasher,
        sessions: SessionManager,
        settings: Optional[AuthSettings] = None,
    ):
        self._store = store
        self._hasher = hasher
        self._sessions = sessions
        self._settings = settings or AuthSettings()

    def login(
        self,
        identifier: str,
        password: str,
        device: Optional[DeviceInfo] = None,
    ) -> LoginResult:
        """
        Authenticate and open a new session.

        Args:
            identifier: Email (case-insensitive) or username
            password: Plain-text password
            device: Client user agent / IP recorded on the session

        Raises:
            InvalidCredentialsError: Unknown identifier or wrong password
            EmailNotVerifiedError: Correct password, unverified email (disclose policy)
        """
        device = device or DeviceInfo()
        account = self._store.find_by_identifier(identifier.strip()) if identifier else None

        if account is None:
            self._hasher.dummy_verify(password or "")
            logger.info("login_failed", reason="unknown_identifier", ip_address=device.ip_address)
            raise InvalidCredentialsError()

        if not self._hasher.verify(password or "", account.password_hash):
            logger.info(
                "login_failed",
                reason="bad_password",
                account_id=account.account_id,
                ip_address=device.ip_address,
            )
            raise InvalidCredentialsError()

        if not account.is_verified:
            logger.info("login_unverified", account_id=account.account_id)
            if self._settings.enumeration_policy == EnumerationPolicy.CONCEAL:
                raise InvalidCredentialsError()
            raise EmailNotVerifiedError()

        tokens = self._sessions.open_session(account, device)
        logger.info("login_succeeded", account_id=account.account_id, ip_address=device.ip_address)
        return LoginResult(tokens=tokens, account=account.summary())
