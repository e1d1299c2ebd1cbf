"""
Token Issuer Port - Interface for access token issuance and verification.

Implementations:
- JWTTokenIssuer: RS256-signed JWT access tokens
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AccessClaims:
    """Verified contents of an access token."""
    account_id: str
    email: str
    username: str
    issued_at: datetime
    expires_at: datetime
    issuer: str
    audience: str
    token_id: Optional[str] = None


class TokenIssuerPort(ABC):
    """Port: Issue and verify short-lived access tokens."""

    @abstractmethod
    def issue_access_token(
        self,
        account_id: str,
        email: str,
        username: str,
        expires_in: Optional[int] = None,
    ) -> str:
        """
        Create a signed access token.

        Args:
            account_id: Account ID (``sub`` claim)
            email: Account email
            username: Account username
            expires_in: Lifetime in seconds (default from settings)

        Returns:
            Signed token string
        """
        pass

    @abstractmethod
    def verify_access_token(self, token: str) -> AccessClaims:
        """
        Verify a token without consulting storage.

        Args:
            token: Token to verify

        Returns:
            Verified claims

        Raises:
            TokenExpiredError: Past expiry
            MalformedTokenError: Not decodable or missing claims
            BadSignatureError: Not signed by our private key
            TokenInvalidError: Wrong issuer, audience or algorithm
        """
        pass

    @property
    @abstractmethod
    def expires_in(self) -> int:
        """Default access token lifetime in seconds."""
        pass

    @abstractmethod
    def public_key_pem(self) -> str:
        """Public key for offline verification by other services."""
        pass

    @abstractmethod
    def jwks(self) -> Dict[str, Any]:
        """Public key as a JSON Web Key Set."""
        pass
