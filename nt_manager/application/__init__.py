"""Application services."""

from .errors import ItemNotFoundError, WorkOrderNotFoundError
from .runtime import EngineRuntime, build_runtime, configure_runtime, get_runtime, reset_runtime

__all__ = [
    "EngineRuntime",
    "ItemNotFoundError",
    "WorkOrderNotFoundError",
    "build_runtime",
    "configure_runtime",
    "get_runtime",
    "reset_runtime",
]
