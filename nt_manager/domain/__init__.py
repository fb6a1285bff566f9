"""Domain layer definitions."""

from .notifications import BatchKind, BatchOperation, Notification

__all__ = [
    "BatchKind",
    "BatchOperation",
    "Notification",
]
