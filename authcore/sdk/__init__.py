"""Client facade over the services and adapters."""

from authcore.sdk.client import AuthClient

__all__ = ["AuthClient"]
