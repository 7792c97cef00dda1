"""ProfileStore protocol — engine-agnostic profile persistence interface."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from wayfarer_persistence.models import Profile


@runtime_checkable
class ProfileStore(Protocol):
    """Keyed record store for profiles, queryable by email.

    The store does not enforce email uniqueness; callers that need at most
    one profile per email must look up before writing.
    """

    async def insert(self, profile: Profile) -> Profile:
        """Insert a new profile and return it with its ``ref`` assigned."""
        ...

    async def find_by_email(self, email: str) -> Profile | None:
        """Return the first profile whose email equals *email*, or ``None``."""
        ...

    async def update(self, ref: str, fields: dict[str, Any]) -> Profile | None:
        """Apply a partial update using document field names.

        Returns the updated profile, or ``None`` if *ref* does not exist.
        """
        ...

    async def delete(self, ref: str) -> bool:
        """Delete a profile by ref. Returns True if a document was removed."""
        ...

    async def count(self) -> int:
        """Return the number of stored profiles."""
        ...
