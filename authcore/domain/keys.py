"""
Key Material - The process-wide RSA signing/verification pair.

Built once at startup and passed to the token issuer. Immutable.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Union
import hashlib
import os

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


@dataclass(frozen=True)
class KeyMaterial:
    """
    Asymmetric key pair used to sign access tokens.

    Domain rules:
    - private key never leaves this object except to sign
    - the public key may be exported freely for offline verification
    """
    private_key_pem: str = field(repr=False)
    public_key_pem: str
    algorithm: str = "RS256"

    def __post_init__(self):
        if "PRIVATE KEY" not in self.private_key_pem:
            raise ValueError("private_key_pem is not a PEM private key")
        if "PUBLIC KEY" not in self.public_key_pem:
            raise ValueError("public_key_pem is not a PEM public key")

    @property
    def key_id(self) -> str:
        """Stable identifier derived from the public key (JWT ``kid``)."""
        return hashlib.sha256(self.public_key_pem.strip().encode()).hexdigest()[:16]

    @classmethod
    def generate(cls, key_size: int = 2048) -> "KeyMaterial":
        """
        Generate a fresh RSA key pair.

        Args:
            key_size: Modulus length in bits (default 2048)
        """
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()
        return cls(private_key_pem=private_pem, public_key_pem=public_pem)

    @classmethod
    def from_files(
        cls,
        private_key_path: Union[str, Path],
        public_key_path: Union[str, Path],
    ) -> "KeyMaterial":
        """Load PEM files from disk."""
        private_path = Path(private_key_path)
        public_path = Path(public_key_path)
        if not private_path.exists() or not public_path.exists():
            raise FileNotFoundError(
                f"RSA key files not found ({private_path}, {public_path}); "
                "generate them with KeyMaterial.generate().save(...)"
            )
        return cls(
            private_key_pem=private_path.read_text(encoding="utf-8"),
            public_key_pem=public_path.read_text(encoding="utf-8"),
        )

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        default_private_path: str = "keys/private.key",
        default_public_path: str = "keys/public.key",
    ) -> "KeyMaterial":
        """
        Load keys from the environment.

        ``PRIVATE_KEY``/``PUBLIC_KEY`` hold inline PEM (``\\n`` escapes allowed,
        for container deployments); otherwise ``PRIVATE_KEY_PATH``/``PUBLIC_KEY_PATH``
        point at PEM files.
        """
        env = os.environ if env is None else env
        private_pem = env.get("PRIVATE_KEY")
        public_pem = env.get("PUBLIC_KEY")
        if private_pem and public_pem:
            return cls.from_pem(private_pem, public_pem)
        return cls.from_files(
            env.get("PRIVATE_KEY_PATH", default_private_path),
            env.get("PUBLIC_KEY_PATH", default_public_path),
        )

    @classmethod
    def from_pem(cls, private_key_pem: str, public_key_pem: str) -> "KeyMaterial":
        """Build from PEM strings, unescaping literal ``\\n`` sequences."""
        return cls(
            private_key_pem=private_key_pem.replace("\\n", "\n"),
            public_key_pem=public_key_pem.replace("\\n", "\n"),
        )

    def save(self, directory: Union[str, Path]) -> None:
        """Write private.key (0600) and public.key (0644) into directory."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        private_path = directory / "private.key"
        public_path = directory / "public.key"
        private_path.write_text(self.private_key_pem, encoding="utf-8")
        os.chmod(private_path, 0o600)
        public_path.write_text(self.public_key_pem, encoding="utf-8")
        os.chmod(public_path, 0o644)
