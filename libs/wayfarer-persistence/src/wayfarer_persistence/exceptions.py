"""Domain exceptions for the profile persistence layer.

Every adapter catches its driver's exceptions and re-raises one of these,
so the account lifecycle never has to know which document store is behind it.
"""

from __future__ import annotations


class PersistenceError(Exception):
    """Base exception for all profile-store errors.

    Attributes:
        collection: The collection the operation targeted.
        operation: The store operation that failed (e.g. ``"insert"``, ``"find_by_email"``).
        detail: A sanitised description of what went wrong.
    """

    def __init__(
        self,
        *,
        collection: str,
        operation: str,
        detail: str,
        cause: Exception | None = None,
    ) -> None:
        self.collection = collection
        self.operation = operation
        self.detail = detail
        super().__init__(f"[{collection}] {operation} failed: {detail}")
        if cause is not None:
            self.__cause__ = cause


class DuplicateEntityError(PersistenceError):
    """Raised when an insert collides with an existing document key."""


class ConnectionFailedError(PersistenceError):
    """Raised when the adapter cannot reach the document store."""


class QueryError(PersistenceError):
    """Raised for rejected filters or failed queries."""
