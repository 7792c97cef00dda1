"""Wayfarer Persistence — profile records and their document-store adapters."""

from wayfarer_persistence.adapters.memory import InMemoryProfileStore
from wayfarer_persistence.adapters.mongo import MongoProfileStore
from wayfarer_persistence.exceptions import (
    ConnectionFailedError,
    DuplicateEntityError,
    PersistenceError,
    QueryError,
)
from wayfarer_persistence.models import Profile
from wayfarer_persistence.protocols import ProfileStore

__all__ = [
    "ConnectionFailedError",
    "DuplicateEntityError",
    "InMemoryProfileStore",
    "MongoProfileStore",
    "PersistenceError",
    "Profile",
    "ProfileStore",
    "QueryError",
]
