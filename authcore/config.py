"""
Runtime settings.

Values come from keyword arguments, or via ``AuthSettings.from_env()`` from
the process environment with a ``.env`` file as fallback.
"""

import os
import re
from enum import Enum
from typing import Any, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class EnumerationPolicy(str, Enum):
    """
    Single anti-enumeration posture shared by registration and login.

    - DISCLOSE: duplicate email/username raise ConflictError; a correct
      password on an unverified account raises EmailNotVerifiedError.
    - CONCEAL: duplicates are acknowledged like a fresh registration and
      unverified logins fail as InvalidCredentialsError.
    """

    DISCLOSE = "disclose"
    CONCEAL = "conceal"


class StorageBackend(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"


def parse_duration(value: Any) -> int:
    """
    Parse a duration into seconds.

    Accepts ints, digit strings ("900") and unit strings ("15m", "7d").
    """
    if isinstance(value, bool):
        raise ValueError("duration must be a number of seconds or '<n>[smhd]'")
    if isinstance(value, int):
        seconds = value
    elif isinstance(value, float):
        seconds = int(value)
    elif isinstance(value, str):
        text = value.strip().lower()
        if text.isdigit():
            seconds = int(text)
        else:
            match = _DURATION_RE.match(text)
            if not match:
                raise ValueError(f"invalid duration: {value!r}")
            seconds = int(match.group(1)) * _DURATION_UNITS[match.group(2)]
    else:
        raise ValueError(f"invalid duration: {value!r}")

    if seconds <= 0:
        raise ValueError("duration must be positive")
    return seconds


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class AuthSettings(BaseModel):
    """Settings for tokens, sessions, registration and storage."""

    model_config = ConfigDict(extra="ignore")

    # Access tokens
    issuer: str = env_field("authCore", "AUTHCORE_ISSUER")
    audience: str = env_field("authCore-api", "AUTHCORE_AUDIENCE")
    access_token_ttl: int = env_field(900, "ACCESS_TOKEN_EXPIRE")

    # Refresh sessions
    refresh_token_ttl: int = env_field(7 * 86400, "REFRESH_TOKEN_EXPIRE")
    max_sessions: int = env_field(5, "MAX_SESSIONS", ge=1)

    # Registration / verification
    verification_ticket_ttl: int = env_field(86400, "VERIFICATION_TOKEN_EXPIRE")
    verification_url_base: str = env_field("http://localhost:3000", "VERIFY_URL_BASE")
    delivery_attempts: int = env_field(3, "EMAIL_DELIVERY_ATTEMPTS", ge=1)
    delivery_backoff: float = env_field(1.0, "EMAIL_DELIVERY_BACKOFF", ge=0)
    enumeration_policy: EnumerationPolicy = env_field(
        EnumerationPolicy.DISCLOSE, "ENUMERATION_POLICY"
    )

    # Password hashing
    bcrypt_rounds: int = env_field(10, "BCRYPT_ROUNDS", ge=4, le=16)

    # Storage
    storage_backend: StorageBackend = env_field(StorageBackend.MEMORY, "STORAGE_BACKEND")
    redis_url: str = env_field("redis://localhost:6379/0", "REDIS_URL")
    redis_prefix: str = env_field("authcore:", "REDIS_PREFIX")

    # Key material (inline PEM wins over paths)
    private_key: Optional[str] = env_field(None, "PRIVATE_KEY")
    public_key: Optional[str] = env_field(None, "PUBLIC_KEY")
    private_key_path: str = env_field("keys/private.key", "PRIVATE_KEY_PATH")
    public_key_path: str = env_field("keys/public.key", "PUBLIC_KEY_PATH")

    @classmethod
    def from_env(cls, env_file: str = ".env") -> "AuthSettings":
        env_file_values = dotenv_values(env_file)
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_file_values.get(env_name) is not None:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator(
        "access_token_ttl",
        "refresh_token_ttl",
        "verification_ticket_ttl",
        mode="before",
    )
    @classmethod
    def _parse_duration(cls, value: Any) -> int:
        return parse_duration(value)

    @field_validator("verification_url_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def verification_url(self, ticket_value: str) -> str:
        """Link a user follows to consume a verification ticket."""
        return f"{self.verification_url_base}/api/auth/verify?token={ticket_value}"
