"""Session observer: the single owner of the application's current identity.

The observer holds one subscription to the credential store's session
notifications. On each notification it publishes either a
:class:`CurrentIdentity` (session present and email verified) or ``None``.
Nothing else writes the current identity; consumers read
:attr:`SessionObserver.current` or iterate :meth:`SessionObserver.watch`.

Usage:

    async with SessionObserver(credentials, profiles) as observer:
        async for current in observer.watch():
            render(current)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncGenerator

from wayfarer_persistence import PersistenceError, ProfileStore

from wayfarer_accounts.credentials.base import CredentialStore, Unsubscribe
from wayfarer_accounts.identity import CurrentIdentity, Identity, normalize_email

logger = logging.getLogger(__name__)

# Queued to each watcher when the observer closes.
_CLOSED = object()


class SessionObserver:
    """Resolves provider sessions into the app-wide current identity."""

    def __init__(self, credentials: CredentialStore, profiles: ProfileStore) -> None:
        self._credentials = credentials
        self._profiles = profiles
        self._current: CurrentIdentity | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._closed = False
        self._sequence = 0
        self._watchers: list[asyncio.Queue[Any]] = []

    async def __aenter__(self) -> SessionObserver:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def current(self) -> CurrentIdentity | None:
        """The verified signed-in identity, or ``None`` when nobody is logged in."""
        return self._current

    @property
    def is_active(self) -> bool:
        return self._unsubscribe is not None

    async def start(self) -> None:
        """Subscribe to session changes and resolve the provider's present session."""
        if self._closed:
            raise RuntimeError("SessionObserver has been closed and cannot be restarted.")
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._credentials.on_session_change(self._on_session_change)
        await self._on_session_change(self._credentials.current_session())

    def close(self) -> None:
        """Release the subscription and end every :meth:`watch` stream.

        Afterwards :attr:`current` is ``None`` and nothing is published again.
        """
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._current = None
        for queue in self._watchers:
            queue.put_nowait(_CLOSED)

    def clear(self) -> None:
        """Publish "no current identity" immediately, without waiting for the provider."""
        if self._closed:
            return
        self._sequence += 1
        self._publish(None)

    async def watch(self) -> AsyncGenerator[CurrentIdentity | None, None]:
        """Yield the current value, then every later change, until :meth:`close`."""
        if self._closed:
            return
        queue: asyncio.Queue[Any] = asyncio.Queue()
        queue.put_nowait(self._current)
        self._watchers.append(queue)
        try:
            while True:
                value = await queue.get()
                if value is _CLOSED:
                    return
                yield value
        finally:
            self._watchers.remove(queue)

    async def _on_session_change(self, identity: Identity | None) -> None:
        if self._closed:
            return
        self._sequence += 1
        sequence = self._sequence

        if identity is None or not identity.email_verified:
            self._publish(None)
            return

        display_name = await self._resolve_display_name(identity)
        # A newer notification arrived while the profile lookup was suspended.
        if self._closed or sequence != self._sequence:
            return
        self._publish(CurrentIdentity(identity=identity, display_name=display_name))

    async def _resolve_display_name(self, identity: Identity) -> str:
        try:
            profile = await self._profiles.find_by_email(normalize_email(identity.email))
        except PersistenceError:
            logger.warning(
                "Profile lookup failed for uid=%s; publishing identity without a display name",
                identity.uid,
                exc_info=True,
            )
            return ""
        if profile is None:
            logger.info(
                "No profile for verified identity uid=%s",
                identity.uid,
                extra={"event": "profile_orphaned", "uid": identity.uid},
            )
            return ""
        return profile.name

    def _publish(self, value: CurrentIdentity | None) -> None:
        if self._closed or value == self._current:
            return
        self._current = value
        for queue in self._watchers:
            queue.put_nowait(value)
