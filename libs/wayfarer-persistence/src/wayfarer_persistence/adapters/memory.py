"""In-memory profile store for development and testing."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from wayfarer_persistence.adapters import _validate_update_fields
from wayfarer_persistence.models import Profile

logger = logging.getLogger(__name__)


class InMemoryProfileStore:
    """Non-persistent profile store backed by a dict of documents.

    Like a document collection without a unique index, it accepts several
    profiles with the same email; ``find_by_email`` returns the oldest.

    .. warning::
        All profiles are lost on process restart. Do **not** use in production.
    """

    def __init__(self, collection: str = "users") -> None:
        logger.warning(
            "Profile store is using the in-memory backend. "
            "All profiles will be lost on restart. "
            "Provide a persistent ProfileStore implementation for production use.",
        )
        self.collection = collection
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def insert(self, profile: Profile) -> Profile:
        ref = uuid.uuid4().hex
        async with self._lock:
            self._docs[ref] = profile.to_document()
        return profile.model_copy(update={"ref": ref})

    async def find_by_email(self, email: str) -> Profile | None:
        async with self._lock:
            for ref, doc in self._docs.items():
                if doc.get("email") == email:
                    return Profile.from_document(ref, doc)
        return None

    async def update(self, ref: str, fields: dict[str, Any]) -> Profile | None:
        _validate_update_fields(fields, self.collection)
        async with self._lock:
            doc = self._docs.get(ref)
            if doc is None:
                return None
            doc.update(fields)
            return Profile.from_document(ref, doc)

    async def delete(self, ref: str) -> bool:
        async with self._lock:
            return self._docs.pop(ref, None) is not None

    async def count(self) -> int:
        async with self._lock:
            return len(self._docs)
