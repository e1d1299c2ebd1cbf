"""
Ports - Interfaces for storage, token issuance and notification.

Hexagonal architecture: These define WHAT we need, not HOW.
Adapters provide the HOW.
"""

from authcore.ports.credential_store_port import CredentialStorePort
from authcore.ports.token_port import TokenIssuerPort, AccessClaims
from authcore.ports.notifier_port import NotifierPort, VERIFICATION_TEMPLATE

__all__ = [
    "CredentialStorePort",
    "TokenIssuerPort",
    "AccessClaims",
    "NotifierPort",
    "VERIFICATION_TEMPLATE",
]
