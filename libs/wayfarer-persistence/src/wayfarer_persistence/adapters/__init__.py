"""Profile store adapters for each document engine."""

from __future__ import annotations

from typing import Any

from wayfarer_persistence.exceptions import QueryError
from wayfarer_persistence.models import UPDATABLE_FIELDS


def _validate_update_fields(fields: dict[str, Any], collection: str) -> dict[str, Any]:
    """Reject empty patches and fields outside ``UPDATABLE_FIELDS``.

    Raises ``QueryError`` so a bad patch never reaches the driver.
    """
    if not fields:
        raise QueryError(collection=collection, operation="update", detail="Update patch is empty.")
    unknown = sorted(set(fields) - UPDATABLE_FIELDS)
    if unknown:
        raise QueryError(
            collection=collection,
            operation="update",
            detail=f"Fields not updatable: {', '.join(unknown)}",
        )
    return fields
