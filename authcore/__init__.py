"""
authCore - Credential & Session Lifecycle

Registration with email verification, password login, RS256 access tokens
and rotating refresh-token sessions, in a hexagonal layout.

Usage:
    from authcore import AuthClient, AuthSettings

    client = AuthClient.from_settings(AuthSettings.from_env())

    # Register, then verify with the ticket from the email
    client.register("ann@example.com", "ann", "s3cret-pass")
    client.verify(ticket)

    # Log in and refresh
    login = client.login("ann@example.com", "s3cret-pass")
    tokens = client.refresh(login.refresh_token)
"""

__version__ = "0.1.0"

from authcore.sdk.client import AuthClient
from authcore.config import AuthSettings, EnumerationPolicy
from authcore.domain.account import Account
from authcore.domain.session import Session, DeviceInfo
from authcore.domain.keys import KeyMaterial

__all__ = [
    "AuthClient",
    "AuthSettings",
    "EnumerationPolicy",
    "Account",
    "Session",
    "DeviceInfo",
    "KeyMaterial",
]
