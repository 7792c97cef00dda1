"""Accounts configuration loaded from .wayfarer/accounts.json."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

DEFAULT_SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'
_DEV_ENVS = ("dev", "development", "test")


def is_dev_environment() -> bool:
    """Return True when ``WAYFARER_ENV`` names a development mode."""
    return os.environ.get("WAYFARER_ENV", "").lower() in _DEV_ENVS


class PasswordPolicyConfig(BaseModel):
    """Rules a new password must satisfy at signup."""

    min_length: int = 8
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_digit: bool = True
    require_special: bool = True
    special_characters: str = DEFAULT_SPECIAL_CHARACTERS

    @model_validator(mode="after")
    def _check_rules(self) -> PasswordPolicyConfig:
        if self.min_length < 1:
            raise ValueError(f"min_length must be >= 1, got {self.min_length}")
        if self.require_special and not self.special_characters:
            raise ValueError("special_characters must not be empty when require_special is enabled.")
        return self


class DigestConfig(BaseModel):
    """Cost factor for the audit digest stored on each profile."""

    rounds: int = 10

    @model_validator(mode="after")
    def _check_rounds(self) -> DigestConfig:
        if not 4 <= self.rounds <= 31:
            raise ValueError(f"bcrypt rounds must be between 4 and 31, got {self.rounds}")
        return self


class IdentityToolkitConfig(BaseModel):
    """Hosted identity provider (Identity Toolkit REST API) settings."""

    api_key: str = ""
    base_url: str = "https://identitytoolkit.googleapis.com/v1"
    timeout_seconds: float = 10.0
    recent_login_seconds: int = 300

    @model_validator(mode="after")
    def _check_base_url(self) -> IdentityToolkitConfig:
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"base_url must be an HTTP(S) URL, got: '{self.base_url}'")
        if not parsed.hostname:
            raise ValueError(f"base_url must include a hostname, got: '{self.base_url}'")
        return self

    def require_api_key(self) -> None:
        """Fail unless an API key is set or a development mode is active."""
        if self.api_key:
            return
        if is_dev_environment():
            logger.warning(
                "IdentityToolkitConfig.api_key is empty. "
                "This is allowed in development mode but requests to a real provider will be rejected.",
            )
            return
        raise ValueError(
            "IdentityToolkitConfig.api_key must be set. Provide the provider's web API key "
            "or set WAYFARER_ENV=dev for local development."
        )


class ProfileStoreConfig(BaseModel):
    """Where profile documents live."""

    collection: str = "users"


class AccountsConfig(BaseModel):
    """Top-level accounts configuration."""

    password_policy: PasswordPolicyConfig = Field(default_factory=PasswordPolicyConfig)
    digest: DigestConfig = Field(default_factory=DigestConfig)
    identity_toolkit: IdentityToolkitConfig = Field(default_factory=IdentityToolkitConfig)
    profiles: ProfileStoreConfig = Field(default_factory=ProfileStoreConfig)

    @classmethod
    def from_file(cls, path: str | Path = ".wayfarer/accounts.json") -> AccountsConfig:
        """Load config from a JSON file, falling back to defaults."""
        p = Path(path)
        if p.exists():
            data: dict[str, Any] = json.loads(p.read_text())
            return cls.model_validate(data)
        return cls()
