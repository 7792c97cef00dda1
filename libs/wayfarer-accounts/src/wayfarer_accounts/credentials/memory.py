"""In-memory identity provider for development and testing."""

from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass, field

import bcrypt

from wayfarer_accounts.credentials.base import SessionListener, SessionListeners, Unsubscribe
from wayfarer_accounts.errors import REQUIRES_RECENT_LOGIN, CredentialStoreError
from wayfarer_accounts.identity import Identity, normalize_email

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class _Account:
    uid: str
    email: str
    password_hash: bytes
    email_verified: bool = False
    last_auth: float = 0.0
    consecutive_failures: int = 0
    locked_until: float = 0.0

    def identity(self) -> Identity:
        return Identity(uid=self.uid, email=self.email, email_verified=self.email_verified)


@dataclass
class SentVerification:
    uid: str
    email: str
    sent_at: float = field(default_factory=time.monotonic)


class InMemoryCredentialStore:
    """Identity provider that keeps accounts in process memory.

    Behaves like a hosted provider as far as the account lifecycle can tell:
    emails are case-insensitive, the provider enforces its own minimum
    password length, verification happens out of band (see
    :meth:`mark_verified`), and deleting an identity requires a sign-in
    within ``recent_login_seconds``.

    .. warning::
        All identities are lost on process restart. Do **not** use in production.
    """

    def __init__(
        self,
        *,
        min_password_length: int = 6,
        recent_login_seconds: int = 300,
        lockout_threshold: int = 0,
        lockout_seconds: int = 300,
        hash_rounds: int = 10,
    ) -> None:
        logger.warning(
            "Credential store is using the in-memory provider. "
            "All identities will be lost on restart. "
            "Configure a hosted identity provider for production use.",
        )
        self.min_password_length = min_password_length
        self.recent_login_seconds = recent_login_seconds
        self.lockout_threshold = lockout_threshold
        self.lockout_seconds = lockout_seconds
        self._hash_rounds = hash_rounds
        self._accounts: dict[str, _Account] = {}
        self._session: Identity | None = None
        self._listeners = SessionListeners()
        self.sent_verifications: list[SentVerification] = []
        # Unknown-email logins still run bcrypt so they take as long as wrong passwords.
        self._dummy_hash = bcrypt.hashpw(b"dummy", bcrypt.gensalt(rounds=hash_rounds))

    def _hash(self, password: str) -> bytes:
        return bcrypt.hashpw(password.encode()[:72], bcrypt.gensalt(rounds=self._hash_rounds))

    def _find_uid(self, uid: str) -> _Account | None:
        for account in self._accounts.values():
            if account.uid == uid:
                return account
        return None

    async def _set_session(self, identity: Identity | None) -> None:
        if identity == self._session:
            return
        self._session = identity
        await self._listeners.notify(identity)

    async def register(self, email: str, password: str) -> Identity:
        key = normalize_email(email)
        if not _EMAIL_RE.match(key):
            raise CredentialStoreError("invalid-email", "The email address is badly formatted.")
        if key in self._accounts:
            raise CredentialStoreError("email-already-in-use", "The email address is already in use.")
        if len(password) < self.min_password_length:
            raise CredentialStoreError(
                "weak-password", f"Password should be at least {self.min_password_length} characters."
            )

        account = _Account(
            uid=secrets.token_hex(14),
            email=key,
            password_hash=self._hash(password),
            last_auth=time.monotonic(),
        )
        self._accounts[key] = account
        logger.info("Identity registered: uid=%s email=%s", account.uid, key)
        identity = account.identity()
        await self._set_session(identity)
        return identity

    async def authenticate(self, email: str, password: str) -> Identity:
        key = normalize_email(email)
        if not _EMAIL_RE.match(key):
            raise CredentialStoreError("invalid-email", "The email address is badly formatted.")
        account = self._accounts.get(key)
        now = time.monotonic()
        if account is not None and account.locked_until > now:
            raise CredentialStoreError("too-many-requests", "Access temporarily disabled due to many failed attempts.")

        password_valid = bcrypt.checkpw(password.encode()[:72], account.password_hash if account else self._dummy_hash)
        if account is None:
            raise CredentialStoreError("user-not-found", "There is no user record for this email.")
        if not password_valid:
            account.consecutive_failures += 1
            if self.lockout_threshold > 0 and account.consecutive_failures >= self.lockout_threshold:
                account.locked_until = now + self.lockout_seconds
                logger.warning(
                    "Credential lockout triggered for email=%s after %d consecutive failures",
                    key,
                    account.consecutive_failures,
                )
            raise CredentialStoreError("wrong-password", "The password is invalid.")

        account.consecutive_failures = 0
        account.last_auth = now
        identity = account.identity()
        await self._set_session(identity)
        return identity

    async def send_verification(self, identity: Identity) -> None:
        account = self._find_uid(identity.uid)
        if account is None:
            raise CredentialStoreError("user-not-found", "There is no user record for this identity.")
        self.sent_verifications.append(SentVerification(uid=account.uid, email=account.email))

    async def sign_out(self) -> None:
        await self._set_session(None)

    async def delete_identity(self, identity: Identity) -> None:
        account = self._find_uid(identity.uid)
        if account is None:
            raise CredentialStoreError("user-not-found", "There is no user record for this identity.")
        if time.monotonic() - account.last_auth > self.recent_login_seconds:
            raise CredentialStoreError(REQUIRES_RECENT_LOGIN, "This operation requires a recent sign-in.")
        del self._accounts[account.email]
        logger.info("Identity deleted: uid=%s", account.uid)
        if self._session is not None and self._session.uid == account.uid:
            await self._set_session(None)

    def on_session_change(self, callback: SessionListener) -> Unsubscribe:
        return self._listeners.add(callback)

    def current_session(self) -> Identity | None:
        return self._session

    def mark_verified(self, email: str) -> None:
        """Simulate the user clicking the verification link sent to *email*."""
        account = self._accounts.get(normalize_email(email))
        if account is None:
            raise KeyError(f"No identity for {email}")
        account.email_verified = True

    def has_identity(self, email: str) -> bool:
        return normalize_email(email) in self._accounts
