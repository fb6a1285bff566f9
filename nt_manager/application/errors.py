from __future__ import annotations


class WorkOrderNotFoundError(LookupError):
    """Raised when a work order id does not resolve to a stored document."""


class ItemNotFoundError(LookupError):
    """Raised when an item id does not resolve to a stored document."""
