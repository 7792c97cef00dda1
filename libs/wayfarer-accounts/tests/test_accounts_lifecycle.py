"""Tests for AccountLifecycle: signup, login, logout and deletion."""

from __future__ import annotations

import asyncio
import logging
import time
from unittest.mock import AsyncMock, patch

import pytest
from wayfarer_accounts.errors import (
    AccountValidationError,
    CredentialStoreError,
    EmailNotVerifiedError,
    NotSignedInError,
    ProviderAuthError,
    ProviderError,
    ReauthRequiredError,
)
from wayfarer_accounts.lifecycle import PENDING_VERIFICATION_MESSAGE, AccountLifecycle
from wayfarer_persistence import ConnectionFailedError, Profile

STRONG_PASSWORD = "Abcdef1!"

LIFECYCLE_LOGGER = "wayfarer_accounts.lifecycle"


async def _signup(accounts: AccountLifecycle, name: str = "Ana", email: str = "a@x.com"):
    return await accounts.signup(name, email, STRONG_PASSWORD, STRONG_PASSWORD)


async def _verified_login(accounts: AccountLifecycle, credentials, email: str = "a@x.com"):
    await _signup(accounts, email=email)
    credentials.mark_verified(email)
    return await accounts.login(email, STRONG_PASSWORD)


# ---------------------------------------------------------------------------
# Example scenario
# ---------------------------------------------------------------------------


async def test_signup_verify_login_scenario(accounts, credentials, profiles, observer):
    result = await _signup(accounts)
    assert result.status == "pending-verification"
    assert result.message == PENDING_VERIFICATION_MESSAGE

    profile = await profiles.find_by_email("a@x.com")
    assert profile is not None
    assert profile.name == "Ana"
    assert profile.is_verified is False
    assert profile.password_digest.startswith("$2b$")
    assert profile.password_digest != STRONG_PASSWORD
    assert credentials.has_identity("a@x.com")
    assert credentials.current_session() is None
    assert [v.email for v in credentials.sent_verifications] == ["a@x.com"]

    with pytest.raises(EmailNotVerifiedError):
        await accounts.login("a@x.com", STRONG_PASSWORD)
    assert observer.current is None

    credentials.mark_verified("a@x.com")
    current = await accounts.login("a@x.com", STRONG_PASSWORD)

    assert current.email == "a@x.com"
    assert current.display_name == "Ana"
    assert observer.current == current
    profile = await profiles.find_by_email("a@x.com")
    assert profile is not None and profile.is_verified is True


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("password", "rule"),
    [
        ("Abc1!", "min_length"),
        ("abcdef1!", "uppercase"),
        ("ABCDEF1!", "lowercase"),
        ("Abcdefg!", "digit"),
        ("Abcdefg1", "special"),
    ],
)
async def test_weak_password_rejected_before_any_network_call(accounts, credentials, profiles, password, rule):
    with patch.object(credentials, "register", AsyncMock()) as register:
        with pytest.raises(AccountValidationError) as exc_info:
            await accounts.signup("Ana", "a@x.com", password, password)
    register.assert_not_awaited()
    assert rule in exc_info.value.failed_rules
    assert await profiles.count() == 0


async def test_password_mismatch_rejected(accounts, credentials):
    with patch.object(credentials, "register", AsyncMock()) as register:
        with pytest.raises(AccountValidationError, match="Passwords do not match"):
            await accounts.signup("Ana", "a@x.com", STRONG_PASSWORD, STRONG_PASSWORD + "x")
    register.assert_not_awaited()


@pytest.mark.parametrize(
    ("name", "email"),
    [("", "a@x.com"), ("   ", "a@x.com"), ("Ana", ""), ("Ana", "  ")],
)
async def test_empty_fields_rejected(accounts, name, email):
    with pytest.raises(AccountValidationError) as exc_info:
        await accounts.signup(name, email, STRONG_PASSWORD, STRONG_PASSWORD)
    assert exc_info.value.failed_rules == ["required"]


async def test_duplicate_signup_keeps_single_profile(accounts, profiles):
    await _signup(accounts)
    with pytest.raises(ProviderAuthError) as exc_info:
        await _signup(accounts, name="Impostor", email="A@X.com")
    assert exc_info.value.code == "email-already-in-use"
    assert exc_info.value.message == "This email is already registered. Please login instead."
    assert await profiles.count() == 1
    profile = await profiles.find_by_email("a@x.com")
    assert profile is not None and profile.name == "Ana"


async def test_concurrent_signups_same_email(accounts, profiles):
    results = await asyncio.gather(
        _signup(accounts, name="First"),
        _signup(accounts, name="Second"),
        return_exceptions=True,
    )
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], ProviderAuthError)
    assert await profiles.count() == 1
    assert accounts._locks == {}


async def test_failed_logins_leave_no_email_locks(accounts):
    for i in range(50):
        with pytest.raises(ProviderAuthError):
            await accounts.login(f"nobody{i}@x.com", STRONG_PASSWORD)
    assert accounts._locks == {}


async def test_email_lock_released_after_full_lifecycle(accounts, credentials, observer):
    current = await _verified_login(accounts, credentials)
    await accounts.delete_account(current)
    assert accounts._locks == {}


async def test_provider_rejection_writes_no_profile(accounts, profiles):
    with pytest.raises(ProviderAuthError) as exc_info:
        await accounts.signup("Ana", "not-an-email", STRONG_PASSWORD, STRONG_PASSWORD)
    assert exc_info.value.code == "invalid-email"
    assert await profiles.count() == 0


async def test_verification_email_failure_writes_no_profile(accounts, credentials, profiles):
    failing = AsyncMock(side_effect=CredentialStoreError("network-request-failed", "offline"))
    with patch.object(credentials, "send_verification", failing):
        with pytest.raises(ProviderError) as exc_info:
            await _signup(accounts)
    assert exc_info.value.code == "network-request-failed"
    assert await profiles.count() == 0
    assert credentials.current_session() is None


async def test_profile_write_failure_leaves_verifiable_identity(accounts, credentials, profiles, observer):
    failing = AsyncMock(side_effect=ConnectionFailedError(collection="users", operation="insert", detail="down"))
    with patch.object(profiles, "insert", failing):
        with pytest.raises(ConnectionFailedError):
            await _signup(accounts)

    assert credentials.has_identity("a@x.com")
    assert credentials.current_session() is None
    assert await profiles.count() == 0

    credentials.mark_verified("a@x.com")
    current = await accounts.login("a@x.com", STRONG_PASSWORD)
    assert current.display_name == ""
    assert observer.current == current


async def test_signup_replaces_orphaned_profile(accounts, profiles):
    await profiles.insert(Profile(name="Old", email="a@x.com", is_verified=True))

    await _signup(accounts, name="New")

    assert await profiles.count() == 1
    profile = await profiles.find_by_email("a@x.com")
    assert profile is not None
    assert profile.name == "New"
    assert profile.is_verified is False


async def test_signup_normalizes_email(accounts, profiles, credentials):
    result = await accounts.signup("  Ana ", "  A@X.COM ", STRONG_PASSWORD, STRONG_PASSWORD)
    assert result.email == "a@x.com"
    profile = await profiles.find_by_email("a@x.com")
    assert profile is not None and profile.name == "Ana"


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def test_login_before_verification_leaves_no_session(accounts, credentials, observer):
    await _signup(accounts)
    with pytest.raises(EmailNotVerifiedError):
        await accounts.login("a@x.com", STRONG_PASSWORD)
    assert credentials.current_session() is None
    assert observer.current is None


async def test_verification_mirror_is_set_once_and_stays_true(accounts, credentials, profiles):
    await _signup(accounts)
    credentials.mark_verified("a@x.com")

    with patch.object(profiles, "update", AsyncMock(wraps=profiles.update)) as update:
        await accounts.login("a@x.com", STRONG_PASSWORD)
        await accounts.logout()
        await accounts.login("a@x.com", STRONG_PASSWORD)

    update.assert_awaited_once()
    profile = await profiles.find_by_email("a@x.com")
    assert profile is not None and profile.is_verified is True


async def test_login_without_profile_succeeds(accounts, credentials, observer):
    await credentials.register("solo@x.com", "secret1")
    await credentials.sign_out()
    credentials.mark_verified("solo@x.com")

    current = await accounts.login("solo@x.com", "secret1")

    assert current.display_name == ""
    assert observer.current == current


async def test_login_does_not_apply_signup_policy(accounts, credentials):
    """A password accepted by the provider earlier still logs in under the stricter policy."""
    await credentials.register("old@x.com", "weakpw")
    await credentials.sign_out()
    credentials.mark_verified("old@x.com")

    current = await accounts.login("old@x.com", "weakpw")
    assert current.email == "old@x.com"


@pytest.mark.parametrize(
    ("email", "password", "code", "message"),
    [
        ("a@x.com", "Wrong1!!", "wrong-password", "Incorrect password."),
        ("nobody@x.com", STRONG_PASSWORD, "user-not-found", "No account found with this email."),
    ],
)
async def test_login_provider_errors(accounts, observer, email, password, code, message):
    await _signup(accounts)
    with pytest.raises(ProviderAuthError) as exc_info:
        await accounts.login(email, password)
    assert exc_info.value.code == code
    assert exc_info.value.message == message
    assert observer.current is None


async def test_login_survives_profile_sync_failure(accounts, credentials, profiles):
    await _signup(accounts)
    credentials.mark_verified("a@x.com")
    failing = AsyncMock(side_effect=ConnectionFailedError(collection="users", operation="update", detail="down"))
    with patch.object(profiles, "update", failing):
        current = await accounts.login("a@x.com", STRONG_PASSWORD)
    assert current.email == "a@x.com"


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


async def test_logout_clears_current_identity(accounts, credentials, observer):
    await _verified_login(accounts, credentials)
    await accounts.logout()
    assert observer.current is None
    assert credentials.current_session() is None


async def test_logout_clears_locally_when_provider_fails(accounts, credentials, observer, caplog):
    await _verified_login(accounts, credentials)
    failing = AsyncMock(side_effect=CredentialStoreError("network-request-failed", "offline"))

    with patch.object(credentials, "sign_out", failing), caplog.at_level(logging.WARNING, logger=LIFECYCLE_LOGGER):
        await accounts.logout()

    assert observer.current is None
    assert any("sign-out failed" in r.message for r in caplog.records)


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


async def test_delete_removes_profile_then_identity(accounts, credentials, profiles, observer):
    current = await _verified_login(accounts, credentials)
    order: list[str] = []
    delete_profile = profiles.delete
    delete_identity = credentials.delete_identity

    async def record_profile(ref):
        order.append("profile")
        return await delete_profile(ref)

    async def record_identity(identity):
        order.append("identity")
        return await delete_identity(identity)

    with patch.object(profiles, "delete", record_profile), patch.object(credentials, "delete_identity", record_identity):
        await accounts.delete_account(current)

    assert order == ["profile", "identity"]
    assert await profiles.find_by_email("a@x.com") is None
    assert not credentials.has_identity("a@x.com")
    assert observer.current is None


async def test_delete_reauth_then_retry_succeeds(accounts, credentials, profiles, observer):
    current = await _verified_login(accounts, credentials)

    with patch("wayfarer_accounts.credentials.memory.time.monotonic", return_value=time.monotonic() + 1000):
        with pytest.raises(ReauthRequiredError):
            await accounts.delete_account(current)

    assert await profiles.find_by_email("a@x.com") is None
    assert credentials.has_identity("a@x.com")

    again = await accounts.login("a@x.com", STRONG_PASSWORD)
    assert again.display_name == ""
    await accounts.delete_account(again)

    assert not credentials.has_identity("a@x.com")
    assert observer.current is None


async def test_delete_other_provider_error(accounts, credentials):
    current = await _verified_login(accounts, credentials)
    failing = AsyncMock(side_effect=CredentialStoreError("network-request-failed", "offline"))
    with patch.object(credentials, "delete_identity", failing):
        with pytest.raises(ProviderError) as exc_info:
            await accounts.delete_account(current)
    assert not isinstance(exc_info.value, ReauthRequiredError)
    assert exc_info.value.code == "network-request-failed"


async def test_delete_profile_failure_leaves_identity(accounts, credentials, profiles):
    current = await _verified_login(accounts, credentials)
    failing = AsyncMock(side_effect=ConnectionFailedError(collection="users", operation="delete", detail="down"))
    with patch.object(profiles, "delete", failing):
        with pytest.raises(ConnectionFailedError):
            await accounts.delete_account(current)
    assert credentials.has_identity("a@x.com")


async def test_delete_requires_current_identity(accounts):
    with pytest.raises(NotSignedInError):
        await accounts.delete_account(None)


async def test_deleted_account_cannot_log_in(accounts, credentials):
    current = await _verified_login(accounts, credentials)
    await accounts.delete_account(current)
    with pytest.raises(ProviderAuthError) as exc_info:
        await accounts.login("a@x.com", STRONG_PASSWORD)
    assert exc_info.value.code == "user-not-found"


# ---------------------------------------------------------------------------
# Audit logging
# ---------------------------------------------------------------------------


async def test_lifecycle_logs_never_contain_password(accounts, credentials, caplog):
    with caplog.at_level(logging.DEBUG):
        await _signup(accounts)
        with pytest.raises(EmailNotVerifiedError):
            await accounts.login("a@x.com", STRONG_PASSWORD)
        with pytest.raises(ProviderAuthError):
            await accounts.login("a@x.com", "Wrong-secret-9!")

    full_output = " ".join(r.getMessage() for r in caplog.records)
    assert STRONG_PASSWORD not in full_output
    assert "Wrong-secret-9!" not in full_output


async def test_lifecycle_events_are_tagged(accounts, credentials, caplog):
    with caplog.at_level(logging.INFO, logger=LIFECYCLE_LOGGER):
        current = await _verified_login(accounts, credentials)
        await accounts.delete_account(current)

    events = [getattr(r, "event", None) for r in caplog.records if r.name == LIFECYCLE_LOGGER]
    assert "signup_pending_verification" in events
    assert "login_success" in events
    assert "account_deleted" in events
