"""Application services: the flows built on top of the ports."""

from authcore.services.authentication import AuthenticationFlow, LoginResult
from authcore.services.passwords import PasswordHasher
from authcore.services.registration import RegistrationFlow, RegistrationResult
from authcore.services.sessions import SessionManager, TokenPair
from authcore.services.verification import VerificationFlow

__all__ = [
    "AuthenticationFlow",
    "LoginResult",
    "PasswordHasher",
    "RegistrationFlow",
    "RegistrationResult",
    "SessionManager",
    "TokenPair",
    "VerificationFlow",
]
