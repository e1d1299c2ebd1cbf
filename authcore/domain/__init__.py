"""
Domain Models - Pure business entities.

No infrastructure dependencies. Domain logic only.
"""

from authcore.domain.account import Account, VerificationTicket, normalize_email
from authcore.domain.session import (
    Session,
    SessionStatus,
    DeviceInfo,
    hash_refresh_token,
    mint_refresh_token,
)
from authcore.domain.keys import KeyMaterial

__all__ = [
    "Account",
    "VerificationTicket",
    "normalize_email",
    "Session",
    "SessionStatus",
    "DeviceInfo",
    "hash_refresh_token",
    "mint_refresh_token",
    "KeyMaterial",
]
