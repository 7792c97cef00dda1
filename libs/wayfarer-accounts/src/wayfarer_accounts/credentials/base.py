"""Credential store protocol and the session-change listener registry."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Protocol, runtime_checkable

from wayfarer_accounts.identity import Identity

logger = logging.getLogger(__name__)

SessionListener = Callable[[Identity | None], Awaitable[None]]
Unsubscribe = Callable[[], None]


@runtime_checkable
class CredentialStore(Protocol):
    """Protocol for identity providers holding the authoritative credential.

    Failures are raised as :class:`~wayfarer_accounts.errors.CredentialStoreError`
    carrying a normalized code. Every change of the signed-in session
    (sign-in, sign-out, deletion) is pushed to listeners registered with
    :meth:`on_session_change`.
    """

    async def register(self, email: str, password: str) -> Identity:
        """Create an identity and sign it in. The new identity is unverified."""
        ...

    async def authenticate(self, email: str, password: str) -> Identity:
        """Check the credential and sign the identity in."""
        ...

    async def send_verification(self, identity: Identity) -> None:
        """Ask the provider to email a verification link to *identity*."""
        ...

    async def sign_out(self) -> None:
        """End the current session, if any."""
        ...

    async def delete_identity(self, identity: Identity) -> None:
        """Delete *identity*. Raises ``requires-recent-login`` when the sign-in is stale."""
        ...

    def on_session_change(self, callback: SessionListener) -> Unsubscribe:
        """Register *callback* for session changes and return its unsubscribe function."""
        ...

    def current_session(self) -> Identity | None:
        """Return the signed-in identity, or ``None``."""
        ...


class SessionListeners:
    """Ordered registry of session-change callbacks.

    A callback removed through its unsubscribe function is never invoked
    again, including by a notification already in progress.
    """

    def __init__(self) -> None:
        self._listeners: list[SessionListener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def add(self, callback: SessionListener) -> Unsubscribe:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def notify(self, identity: Identity | None) -> None:
        """Deliver *identity* to each registered callback in registration order."""
        for callback in list(self._listeners):
            if callback not in self._listeners:
                continue
            try:
                await callback(identity)
            except Exception:
                logger.warning("Session listener %r failed; remaining listeners still notified.", callback, exc_info=True)
