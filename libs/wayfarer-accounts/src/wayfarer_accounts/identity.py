"""Identity as reported by the credential store, and the app's current identity."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_serializer


def normalize_email(email: str) -> str:
    """Canonical form used to key identities and profiles."""
    return email.strip().lower()


class Identity(BaseModel):
    """A provider-owned identity. The credential itself never leaves the provider."""

    model_config = ConfigDict(frozen=True)

    uid: str
    email: str
    email_verified: bool = False


class CurrentIdentity(BaseModel):
    """The signed-in, verified identity plus the profile's display name."""

    model_config = ConfigDict(frozen=True)

    identity: Identity
    display_name: str = ""

    @property
    def uid(self) -> str:
        return self.identity.uid

    @property
    def email(self) -> str:
        return self.identity.email

    @model_serializer
    def _serialize(self) -> dict[str, Any]:
        return {
            "uid": self.identity.uid,
            "email": self.identity.email,
            "email_verified": self.identity.email_verified,
            "display_name": self.display_name,
        }

    def __repr__(self) -> str:
        return f"CurrentIdentity(uid={self.uid!r}, email={self.email!r}, display_name={self.display_name!r})"
