"""Tests for the error taxonomy and provider error mapping."""

from __future__ import annotations

import pytest
from wayfarer_accounts.errors import (
    GENERIC_PROVIDER_MESSAGE,
    AccountError,
    CredentialStoreError,
    EmailNotVerifiedError,
    ProviderAuthError,
    ProviderError,
    ReauthRequiredError,
    map_provider_error,
)


@pytest.mark.parametrize(
    ("code", "message"),
    [
        ("email-already-in-use", "This email is already registered. Please login instead."),
        ("invalid-email", "Invalid email address."),
        ("weak-password", "Password is too weak. Use at least 6 characters."),
        ("user-not-found", "No account found with this email."),
        ("wrong-password", "Incorrect password."),
        ("too-many-requests", "Too many failed attempts. Please try again later."),
    ],
)
def test_known_codes_map_to_fixed_messages(code: str, message: str):
    err = map_provider_error(CredentialStoreError(code, "provider text"))
    assert isinstance(err, ProviderAuthError)
    assert err.code == code
    assert err.message == message


def test_unknown_code_uses_provider_detail():
    err = map_provider_error(CredentialStoreError("user-disabled", "The user account has been disabled."))
    assert type(err) is ProviderError
    assert err.message == "The user account has been disabled."


def test_unknown_code_without_detail_uses_generic_message():
    err = map_provider_error(CredentialStoreError("internal-error"))
    assert err.message == GENERIC_PROVIDER_MESSAGE


def test_terminal_conditions_are_distinct_account_errors():
    not_verified = EmailNotVerifiedError()
    reauth = ReauthRequiredError()
    assert isinstance(not_verified, AccountError)
    assert isinstance(reauth, AccountError)
    assert not isinstance(not_verified, ProviderError)
    assert not_verified.code == "email-not-verified"
    assert reauth.code == "reauth-required"
