"""Shared fixtures for wayfarer-accounts tests."""

from __future__ import annotations

import pytest
from wayfarer_accounts.config import AccountsConfig, DigestConfig
from wayfarer_accounts.credentials.memory import InMemoryCredentialStore
from wayfarer_accounts.lifecycle import AccountLifecycle
from wayfarer_accounts.session import SessionObserver
from wayfarer_persistence import InMemoryProfileStore


@pytest.fixture(autouse=True)
def _wayfarer_dev_env(monkeypatch):
    """Default all accounts tests to dev mode so an empty provider API key is accepted."""
    monkeypatch.setenv("WAYFARER_ENV", "dev")


@pytest.fixture
def credentials() -> InMemoryCredentialStore:
    # Minimum bcrypt cost keeps the suite fast.
    return InMemoryCredentialStore(hash_rounds=4)


@pytest.fixture
def profiles() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
async def observer(credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore):
    async with SessionObserver(credentials, profiles) as obs:
        yield obs


@pytest.fixture
def accounts(
    credentials: InMemoryCredentialStore,
    profiles: InMemoryProfileStore,
    observer: SessionObserver,
) -> AccountLifecycle:
    return AccountLifecycle(credentials, profiles, observer, AccountsConfig(digest=DigestConfig(rounds=4)))
