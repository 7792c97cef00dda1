"""Motor/MongoDB profile store."""

from __future__ import annotations

import logging
import uuid
from typing import Any, NoReturn

from wayfarer_persistence.adapters import _validate_update_fields
from wayfarer_persistence.exceptions import (
    ConnectionFailedError,
    DuplicateEntityError,
    PersistenceError,
    QueryError,
)
from wayfarer_persistence.models import Profile

logger = logging.getLogger(__name__)


class MongoProfileStore:
    """Async profile store backed by a Motor database.

    Documents use a string ``_id`` generated at insert time as the profile
    ref. Email lookups are plain equality filters; add an index on ``email``
    for large collections.

    Requires the ``motor`` optional dependency:
        pip install wayfarer[mongo]
    """

    def __init__(self, database: Any = None, *, collection: str = "users") -> None:
        self._database = database
        self.collection = collection

    def _get_collection(self) -> Any:
        """Return the Motor collection, raising if no database is configured."""
        if self._database is None:
            raise RuntimeError(
                "MongoProfileStore requires a Motor database instance. Pass it via the `database` constructor parameter."
            )
        return self._database[self.collection]

    def _raise(self, exc: Exception, operation: str, detail: str) -> NoReturn:
        if _is_duplicate_key_error(exc):
            logger.error("Mongo %s failed for %s: duplicate key", operation, self.collection)
            raise DuplicateEntityError(
                collection=self.collection,
                operation=operation,
                detail="A document with the same key already exists.",
                cause=exc,
            ) from exc
        if _is_connection_error(exc):
            logger.error("Mongo %s connection error for %s: %s", operation, self.collection, type(exc).__name__)
            raise ConnectionFailedError(
                collection=self.collection,
                operation=operation,
                detail="Database connection failed.",
                cause=exc,
            ) from exc
        logger.error("Mongo %s failed for %s: %s", operation, self.collection, type(exc).__name__)
        raise PersistenceError(collection=self.collection, operation=operation, detail=detail, cause=exc) from exc

    async def insert(self, profile: Profile) -> Profile:
        """Insert a profile document and return the profile with its ref."""
        coll = self._get_collection()
        ref = uuid.uuid4().hex
        doc = {"_id": ref, **profile.to_document()}
        try:
            await coll.insert_one(doc)
        except Exception as exc:
            self._raise(exc, "insert", "Insert operation failed.")
        return profile.model_copy(update={"ref": ref})

    async def find_by_email(self, email: str) -> Profile | None:
        """Return the first document whose ``email`` equals *email*."""
        if not isinstance(email, str):
            raise QueryError(
                collection=self.collection,
                operation="find_by_email",
                detail="Email filter must be a string.",
            )
        coll = self._get_collection()
        try:
            doc = await coll.find_one({"email": email})
        except Exception as exc:
            if _is_connection_error(exc):
                self._raise(exc, "find_by_email", "Query execution failed.")
            logger.error("Mongo find_by_email failed for %s: %s", self.collection, type(exc).__name__)
            raise QueryError(
                collection=self.collection,
                operation="find_by_email",
                detail="Query execution failed.",
                cause=exc,
            ) from exc
        if not doc:
            return None
        return Profile.from_document(str(doc["_id"]), dict(doc))

    async def update(self, ref: str, fields: dict[str, Any]) -> Profile | None:
        """``$set`` the given fields on the document with ``_id == ref``."""
        _validate_update_fields(fields, self.collection)
        coll = self._get_collection()
        try:
            result = await coll.update_one({"_id": ref}, {"$set": dict(fields)})
            if result.matched_count == 0:
                return None
            doc = await coll.find_one({"_id": ref})
        except Exception as exc:
            self._raise(exc, "update", "Update operation failed.")
        if not doc:
            return None
        return Profile.from_document(ref, dict(doc))

    async def delete(self, ref: str) -> bool:
        """Delete a document by ``_id``. Returns True if deleted."""
        coll = self._get_collection()
        try:
            result = await coll.delete_one({"_id": ref})
        except Exception as exc:
            self._raise(exc, "delete", "Delete operation failed.")
        return result.deleted_count > 0

    async def count(self) -> int:
        """Count profile documents on the server."""
        coll = self._get_collection()
        try:
            return int(await coll.count_documents({}))
        except Exception as exc:
            self._raise(exc, "count", "Count operation failed.")


def _is_duplicate_key_error(exc: Exception) -> bool:
    """Check whether *exc* is a MongoDB duplicate-key error.

    Works without importing ``pymongo`` by inspecting the class name and the
    error code PyMongo attaches to write errors.
    """
    if type(exc).__name__ == "DuplicateKeyError":
        return True
    return getattr(exc, "code", None) == 11000


def _is_connection_error(exc: Exception) -> bool:
    """Check whether *exc* indicates a connection-level failure."""
    type_names = {cls.__name__ for cls in type(exc).__mro__}
    return bool(type_names & {"ConnectionFailure", "ServerSelectionTimeoutError", "AutoReconnect", "NetworkTimeout"})
