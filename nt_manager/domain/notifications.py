"""Domain entities for notifications and bulk operations."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class BatchKind(str, Enum):
    BULK_CREATION = "bulk_creation"
    ITEM_ADDITION = "item_addition"
    BULK_DELETION = "bulk_deletion"


@dataclass(slots=True)
class BatchOperation:
    """A bulk UI action whose per-row mutations collapse into one notification."""

    operation_id: str
    kind: BatchKind
    target_id: str
    started_at: datetime
    expected_count: int | None = None
    label: str | None = None
    absorbed: int = 0
    closed: bool = False

    @property
    def count(self) -> int:
        return self.expected_count if self.expected_count is not None else self.absorbed


@dataclass(slots=True)
class Notification:
    id: str
    title: str
    message: str
    created_at: datetime
    type: str = "system"
    entity_id: str | None = None
    read: bool = False
