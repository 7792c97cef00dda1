"""Credential store implementations."""

from wayfarer_accounts.credentials.base import CredentialStore, SessionListener, SessionListeners
from wayfarer_accounts.credentials.identity_toolkit import IdentityToolkitCredentialStore
from wayfarer_accounts.credentials.memory import InMemoryCredentialStore

__all__ = [
    "CredentialStore",
    "IdentityToolkitCredentialStore",
    "InMemoryCredentialStore",
    "SessionListener",
    "SessionListeners",
]
