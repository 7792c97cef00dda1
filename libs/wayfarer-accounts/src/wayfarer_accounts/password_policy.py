"""Password strength rules and the audit digest computed at signup.

The checker is a pure function of the password string so a form can
recompute the breakdown on every keystroke. Login never consults it: a
password accepted under an older, weaker policy must still authenticate.
"""

from __future__ import annotations

from dataclasses import dataclass

import bcrypt

from wayfarer_accounts.config import DigestConfig, PasswordPolicyConfig

RULE_DESCRIPTIONS: dict[str, str] = {
    "min_length": "At least {min_length} characters",
    "uppercase": "One uppercase letter (A-Z)",
    "lowercase": "One lowercase letter (a-z)",
    "digit": "One number (0-9)",
    "special": "One special character ({special_characters})",
}


@dataclass(frozen=True)
class PasswordCheck:
    """Per-rule breakdown for one password. Rules disabled by the policy are omitted."""

    rules: dict[str, bool]

    @property
    def is_valid(self) -> bool:
        return all(self.rules.values())

    @property
    def failed_rules(self) -> list[str]:
        return [name for name, met in self.rules.items() if not met]


class PasswordPolicy:
    """Evaluates passwords against a :class:`PasswordPolicyConfig`."""

    def __init__(self, config: PasswordPolicyConfig | None = None) -> None:
        self.config = config or PasswordPolicyConfig()

    def check(self, password: str) -> PasswordCheck:
        cfg = self.config
        rules: dict[str, bool] = {"min_length": len(password) >= cfg.min_length}
        if cfg.require_uppercase:
            rules["uppercase"] = any("A" <= ch <= "Z" for ch in password)
        if cfg.require_lowercase:
            rules["lowercase"] = any("a" <= ch <= "z" for ch in password)
        if cfg.require_digit:
            rules["digit"] = any("0" <= ch <= "9" for ch in password)
        if cfg.require_special:
            rules["special"] = any(ch in cfg.special_characters for ch in password)
        return PasswordCheck(rules=rules)

    def is_valid(self, password: str) -> bool:
        return self.check(password).is_valid

    def describe(self, rule: str) -> str:
        """Human-readable label for *rule*, e.g. for a requirements checklist."""
        return RULE_DESCRIPTIONS[rule].format(
            min_length=self.config.min_length,
            special_characters=self.config.special_characters,
        )


def digest_password(password: str, config: DigestConfig | None = None) -> str:
    """Return a salted bcrypt digest of *password* for the profile's audit field."""
    rounds = (config or DigestConfig()).rounds
    # bcrypt only reads the first 72 bytes and newer releases reject longer input.
    return bcrypt.hashpw(password.encode()[:72], bcrypt.gensalt(rounds=rounds)).decode()
