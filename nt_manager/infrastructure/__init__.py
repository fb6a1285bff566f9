"""Infrastructure layer exports."""

from .documents import (
    ChangeBatch,
    Document,
    DocumentChange,
    DocumentStore,
    Filter,
    InMemoryDocumentStore,
    Subscription,
)
from .keyvalue import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from .scheduling import AsyncioScheduler, Scheduler, TimerHandle

__all__ = [
    "AsyncioScheduler",
    "ChangeBatch",
    "Document",
    "DocumentChange",
    "DocumentStore",
    "Filter",
    "InMemoryDocumentStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "Scheduler",
    "Subscription",
    "TimerHandle",
]
