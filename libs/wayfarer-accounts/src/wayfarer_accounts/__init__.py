"""Wayfarer Accounts — account lifecycle over a hosted identity provider and a profile store."""

from wayfarer_accounts.config import (
    AccountsConfig,
    DigestConfig,
    IdentityToolkitConfig,
    PasswordPolicyConfig,
    ProfileStoreConfig,
)
from wayfarer_accounts.credentials import (
    CredentialStore,
    IdentityToolkitCredentialStore,
    InMemoryCredentialStore,
)
from wayfarer_accounts.errors import (
    AccountError,
    AccountValidationError,
    CredentialStoreError,
    EmailNotVerifiedError,
    NotSignedInError,
    ProviderAuthError,
    ProviderError,
    ReauthRequiredError,
    map_provider_error,
)
from wayfarer_accounts.identity import CurrentIdentity, Identity
from wayfarer_accounts.lifecycle import AccountLifecycle, SignupResult
from wayfarer_accounts.password_policy import PasswordCheck, PasswordPolicy, digest_password
from wayfarer_accounts.router import create_accounts_router
from wayfarer_accounts.session import SessionObserver
from wayfarer_accounts.stats import format_member_count, member_count

__all__ = [
    "AccountError",
    "AccountLifecycle",
    "AccountValidationError",
    "AccountsConfig",
    "CredentialStore",
    "CredentialStoreError",
    "CurrentIdentity",
    "DigestConfig",
    "EmailNotVerifiedError",
    "Identity",
    "IdentityToolkitConfig",
    "IdentityToolkitCredentialStore",
    "InMemoryCredentialStore",
    "NotSignedInError",
    "PasswordCheck",
    "PasswordPolicy",
    "PasswordPolicyConfig",
    "ProfileStoreConfig",
    "ProviderAuthError",
    "ProviderError",
    "ReauthRequiredError",
    "SessionObserver",
    "SignupResult",
    "create_accounts_router",
    "digest_password",
    "format_member_count",
    "map_provider_error",
    "member_count",
]
