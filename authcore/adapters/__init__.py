"""
Adapters - Implementations of ports.

Tokens:
- JWTTokenIssuer: RS256 access tokens

Credential Storage:
- MemoryCredentialStore: In-memory accounts and sessions (testing, single process)
- RedisCredentialStore: Redis-backed accounts and sessions

Notifiers:
- LoggingNotifier: Logs instead of sending (development)
- SMTPNotifier: Email over SMTP
- WebhookNotifier: JSON POST to a delivery service
"""

# Tokens
from authcore.adapters.jwt_auth import JWTTokenIssuer

# Credential Storage
from authcore.adapters.memory_store import MemoryCredentialStore
from authcore.adapters.redis_store import RedisCredentialStore

# Notifiers
from authcore.adapters.logging_notifier import LoggingNotifier
from authcore.adapters.smtp_notifier import SMTPNotifier
from authcore.adapters.webhook_notifier import WebhookNotifier

__all__ = [
    # Tokens
    "JWTTokenIssuer",
    # Credential Storage
    "MemoryCredentialStore",
    "RedisCredentialStore",
    # Notifiers
    "LoggingNotifier",
    "SMTPNotifier",
    "WebhookNotifier",
]
