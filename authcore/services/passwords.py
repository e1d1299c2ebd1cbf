"""
Password hashing with bcrypt.
"""

import secrets

import bcrypt

# bcrypt only considers the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """
    Salted, slow one-way password hashing.

    ``dummy_verify`` burns the same amount of work as a real comparison so a
    login for an unknown account takes as long as one for a real account.
    """

    def __init__(self, rounds: int = 10):
        """
        Args:
            rounds: bcrypt cost factor (4-31; 10+ for production)
        """
        self._rounds = rounds
        self._dummy_hash = self.hash(secrets.token_urlsafe(16))

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=self._rounds)).decode()

    def verify(self, password: str, password_hash: str) -> bool:
        """Constant-time comparison; a corrupt stored hash never matches."""
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode())
        except ValueError:
            return False

    def dummy_verify(self, password: str) -> bool:
        """Compare against a fixed throwaway hash. Always False."""
        self.verify(password, self._dummy_hash)
        return False
