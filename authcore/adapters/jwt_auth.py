"""
JWT Token Issuer - Implements TokenIssuerPort with RS256-signed access tokens.
"""

import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from cryptography.hazmat.primitives import serialization
from jwt.algorithms import RSAAlgorithm

from authcore.domain.keys import KeyMaterial
from authcore.errors import (
    BadSignatureError,
    MalformedTokenError,
    TokenExpiredError,
    TokenInvalidError,
)
from authcore.logging import get_logger
from authcore.ports.token_port import AccessClaims, TokenIssuerPort

logger = get_logger(__name__)

_REQUIRED_CLAIMS = ["sub", "iat", "exp", "iss", "aud"]


class JWTTokenIssuer(TokenIssuerPort):
    """
    Asymmetric JWT access tokens.

    Signs with the private key from KeyMaterial and verifies with the public
    key only, so any service holding the public key can verify offline.
    Stateless: nothing is looked up or stored.
    """

    def __init__(
        self,
        keys: KeyMaterial,
        issuer: str = "authCore",
        audience: str = "authCore-api",
        expires_in: int = 900,
    ):
        """
        Initialize JWT issuer.

        Args:
            keys: Signing key pair
            issuer: ``iss`` claim
            audience: ``aud`` claim
            expires_in: Default token lifetime in seconds (default 15 minutes)
        """
        self._keys = keys
        self._issuer = issuer
        self._audience = audience
        self._expires_in = expires_in

    @property
    def expires_in(self) -> int:
        return self._expires_in

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
            account_id: Account ID
            email: Account email
            username: Account username
            expires_in: Token lifetime in seconds

        Returns:
            JWT token string
        """
        now = datetime.now(timezone.utc)
        ttl = self._expires_in if expires_in is None else expires_in
        payload = {
            "sub": account_id,
            "email": email,
            "username": username,
            "iat": now,
            "exp": now + timedelta(seconds=ttl),
            "iss": self._issuer,
            "aud": self._audience,
            "jti": uuid.uuid4().hex,
        }

        return jwt.encode(
            payload,
            self._keys.private_key_pem,
            algorithm=self._keys.algorithm,
            headers={"kid": self._keys.key_id},
        )

    def verify_access_token(self, token: str) -> AccessClaims:
        """
        Verify signature, issuer, audience and expiry.

        Args:
            token: JWT token string

        Returns:
            Verified claims
        """
        try:
            payload = jwt.decode(
                token,
                self._keys.public_key_pem,
                algorithms=[self._keys.algorithm],
                issuer=self._issuer,
                audience=self._audience,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("access_token_expired")
            raise TokenExpiredError()
        except jwt.InvalidSignatureError:
            logger.info("access_token_bad_signature")
            raise BadSignatureError()
        except (jwt.DecodeError, jwt.MissingRequiredClaimError) as e:
            logger.debug("access_token_malformed", reason=str(e))
            raise MalformedTokenError()
        except jwt.InvalidTokenError as e:
            logger.info("access_token_rejected", reason=str(e))
            raise TokenInvalidError()

        try:
            return AccessClaims(
                account_id=payload["sub"],
                email=payload["email"],
                username=payload["username"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                issuer=payload["iss"],
                audience=self._audience,
                token_id=payload.get("jti"),
            )
        except (KeyError, TypeError, ValueError):
            raise MalformedTokenError()

    def public_key_pem(self) -> str:
        """Export the verification key."""
        return self._keys.public_key_pem

    def jwks(self) -> Dict[str, Any]:
        """Export the verification key as a JWK Set."""
        public_key = serialization.load_pem_public_key(self._keys.public_key_pem.encode())
        jwk = json.loads(RSAAlgorithm.to_jwk(public_key))
        jwk.update({"kid": self._keys.key_id, "alg": self._keys.algorithm, "use": "sig"})
        return {"keys": [jwk]}
