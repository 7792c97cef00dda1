"""Profile record kept in the document store alongside each identity."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Profile(BaseModel):
    """One user's profile, keyed logically by ``email``.

    ``password_digest`` is an audit copy computed at signup. Nothing reads it
    back for authentication; the identity provider owns the real credential.
    ``is_verified`` mirrors the provider's verification flag and is only ever
    raised to ``True``.
    """

    ref: str | None = None
    name: str
    email: str
    password_digest: str = Field(default="", repr=False)
    is_verified: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored document shape (without the ref)."""
        return {
            "name": self.name,
            "email": self.email,
            "password": self.password_digest,
            "isVerified": self.is_verified,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, ref: str, doc: dict[str, Any]) -> Profile:
        return cls(
            ref=ref,
            name=doc.get("name", ""),
            email=doc.get("email", ""),
            password_digest=doc.get("password", ""),
            is_verified=bool(doc.get("isVerified", False)),
            created_at=doc.get("createdAt") or _utcnow(),
        )


# Document field names accepted by ``ProfileStore.update``.
UPDATABLE_FIELDS = frozenset({"name", "isVerified"})
