"""Account lifecycle: signup, login, logout and deletion across two stores.

The identity provider and the profile store share no transaction, so every
operation runs a fixed sequence of steps and leaves a known, recoverable
state if it stops part-way:

- **signup** creates the identity before the profile. If the profile write
  fails, a profile-less identity remains; it can still verify and log in.
- **delete** removes the profile before the identity. If the identity
  deletion is refused for a stale sign-in, the user re-authenticates and
  retries; the profile step is then a no-op.

Signup, login and delete for the same email are serialized; nothing is
retried automatically.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Literal

from pydantic import BaseModel
from wayfarer_persistence import PersistenceError, Profile, ProfileStore

from wayfarer_accounts.config import AccountsConfig
from wayfarer_accounts.credentials.base import CredentialStore
from wayfarer_accounts.errors import (
    REQUIRES_RECENT_LOGIN,
    AccountValidationError,
    CredentialStoreError,
    EmailNotVerifiedError,
    NotSignedInError,
    ReauthRequiredError,
    map_provider_error,
)
from wayfarer_accounts.identity import CurrentIdentity, normalize_email
from wayfarer_accounts.password_policy import PasswordPolicy, digest_password
from wayfarer_accounts.session import SessionObserver

logger = logging.getLogger(__name__)

PENDING_VERIFICATION_MESSAGE = "Account created! Please check your email to verify your account before logging in."


class SignupResult(BaseModel):
    """Outcome of a successful signup: the caller must wait for verification."""

    status: Literal["pending-verification"] = "pending-verification"
    email: str
    message: str = PENDING_VERIFICATION_MESSAGE


@dataclass
class _EmailLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class AccountLifecycle:
    """Orchestrates the credential store and profile store for each account operation."""

    def __init__(
        self,
        credentials: CredentialStore,
        profiles: ProfileStore,
        observer: SessionObserver,
        config: AccountsConfig | None = None,
    ) -> None:
        self.config = config or AccountsConfig()
        self.password_policy = PasswordPolicy(self.config.password_policy)
        self._credentials = credentials
        self._profiles = profiles
        self._observer = observer
        self._locks: dict[str, _EmailLock] = {}

    @asynccontextmanager
    async def _email_lock(self, email: str) -> AsyncIterator[None]:
        """Hold the lock for *email*; the entry is dropped once nobody holds or awaits it."""
        entry = self._locks.get(email)
        if entry is None:
            entry = self._locks[email] = _EmailLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[email]

    def _validate_signup(self, name: str, email: str, password: str, confirm_password: str) -> None:
        if not name or not email or not password or not confirm_password:
            raise AccountValidationError("All fields are required.", ["required"])
        if password != confirm_password:
            raise AccountValidationError("Passwords do not match", ["confirm_password"])
        check = self.password_policy.check(password)
        if not check.is_valid:
            raise AccountValidationError("Password must meet all security requirements", check.failed_rules)

    async def _sign_out_quietly(self, reason: str) -> None:
        try:
            await self._credentials.sign_out()
        except Exception:
            logger.warning(
                "Provider sign-out failed during %s; local session cleared anyway",
                reason,
                exc_info=True,
                extra={"event": "logout_provider_error", "reason": reason},
            )
        self._observer.clear()

    async def signup(self, name: str, email: str, password: str, confirm_password: str) -> SignupResult:
        """Register an identity, request verification, write the profile, then sign out.

        Raises:
            AccountValidationError: Input rejected locally; no network call was made.
            ProviderError: The provider refused the registration or verification email.
            PersistenceError: The profile write failed after the identity was created.
        """
        name = name.strip()
        key = normalize_email(email)
        try:
            self._validate_signup(name, key, password, confirm_password)
        except AccountValidationError as exc:
            logger.info(
                "Signup rejected locally: email=%s rules=%s",
                key,
                exc.failed_rules,
                extra={"event": "signup_rejected", "email": key, "failed_rules": exc.failed_rules},
            )
            raise

        async with self._email_lock(key):
            digest = digest_password(password, self.config.digest)

            try:
                identity = await self._credentials.register(key, password)
            except CredentialStoreError as exc:
                logger.warning(
                    "Signup refused by provider: email=%s code=%s",
                    key,
                    exc.code,
                    extra={"event": "signup_rejected", "email": key, "code": exc.code},
                )
                raise map_provider_error(exc) from exc

            try:
                await self._credentials.send_verification(identity)
            except CredentialStoreError as exc:
                logger.error(
                    "Verification email failed: email=%s uid=%s code=%s",
                    key,
                    identity.uid,
                    exc.code,
                    extra={"event": "signup_rejected", "email": key, "code": exc.code},
                )
                await self._sign_out_quietly("signup")
                raise map_provider_error(exc) from exc

            try:
                stale = await self._profiles.find_by_email(key)
                if stale is not None and stale.ref is not None:
                    logger.warning(
                        "Replacing orphaned profile for email=%s ref=%s",
                        key,
                        stale.ref,
                        extra={"event": "profile_orphaned", "email": key, "ref": stale.ref},
                    )
                    await self._profiles.delete(stale.ref)
                await self._profiles.insert(Profile(name=name, email=key, password_digest=digest, is_verified=False))
            except PersistenceError:
                logger.error(
                    "Profile write failed after identity creation: email=%s uid=%s",
                    key,
                    identity.uid,
                    extra={"event": "profile_orphaned", "email": key, "uid": identity.uid},
                )
                await self._sign_out_quietly("signup")
                raise

            await self._sign_out_quietly("signup")

        logger.info(
            "Signup pending verification: email=%s uid=%s",
            key,
            identity.uid,
            extra={"event": "signup_pending_verification", "email": key, "uid": identity.uid},
        )
        return SignupResult(email=key)

    async def login(self, email: str, password: str) -> CurrentIdentity:
        """Authenticate and, if the email is verified, mirror verification onto the profile.

        Raises:
            ProviderAuthError: Wrong credentials, unknown email, rate limiting, etc.
            EmailNotVerifiedError: Credentials were valid but the email is unverified.
        """
        key = normalize_email(email)
        async with self._email_lock(key):
            try:
                identity = await self._credentials.authenticate(key, password)
            except CredentialStoreError as exc:
                logger.warning(
                    "Login failed: email=%s code=%s",
                    key,
                    exc.code,
                    extra={"event": "login_failed", "email": key, "code": exc.code},
                )
                raise map_provider_error(exc) from exc

            if not identity.email_verified:
                await self._sign_out_quietly("login")
                logger.warning(
                    "Login blocked for unverified email=%s uid=%s",
                    key,
                    identity.uid,
                    extra={"event": "login_unverified", "email": key, "uid": identity.uid},
                )
                raise EmailNotVerifiedError()

            display_name = ""
            try:
                profile = await self._profiles.find_by_email(key)
                if profile is not None:
                    display_name = profile.name
                    if not profile.is_verified and profile.ref is not None:
                        await self._profiles.update(profile.ref, {"isVerified": True})
            except PersistenceError:
                logger.warning("Profile verification sync failed for email=%s", key, exc_info=True)

        logger.info(
            "Login successful: email=%s uid=%s",
            key,
            identity.uid,
            extra={"event": "login_success", "email": key, "uid": identity.uid},
        )
        return CurrentIdentity(identity=identity, display_name=display_name)

    async def logout(self) -> None:
        """Sign out at the provider and clear the current identity. Never raises."""
        await self._sign_out_quietly("logout")
        logger.info("Logged out", extra={"event": "logout"})

    async def delete_account(self, current: CurrentIdentity | None) -> None:
        """Delete the profile, then the identity.

        The caller is responsible for confirming with the user first.

        Raises:
            NotSignedInError: *current* is ``None``.
            ReauthRequiredError: The provider wants a fresh sign-in. The profile
                is already gone; retrying after logging in again is safe.
            ProviderError: Any other provider failure.
        """
        if current is None:
            raise NotSignedInError()
        key = normalize_email(current.email)

        async with self._email_lock(key):
            profile = await self._profiles.find_by_email(key)
            if profile is not None and profile.ref is not None:
                await self._profiles.delete(profile.ref)

            try:
                await self._credentials.delete_identity(current.identity)
            except CredentialStoreError as exc:
                if exc.code == REQUIRES_RECENT_LOGIN:
                    logger.warning(
                        "Account deletion needs re-authentication: email=%s uid=%s",
                        key,
                        current.uid,
                        extra={"event": "account_delete_reauth_required", "email": key, "uid": current.uid},
                    )
                    raise ReauthRequiredError() from exc
                raise map_provider_error(exc) from exc

            self._observer.clear()

        logger.info(
            "Account deleted: email=%s uid=%s",
            key,
            current.uid,
            extra={"event": "account_deleted", "email": key, "uid": current.uid},
        )
