"""Document store contract and the in-memory implementation.

The dashboard runs against a hosted document database in production.  The
engine only relies on the narrow surface described by :class:`DocumentStore`:
live subscriptions that deliver change batches, one-shot queries and the
handful of writes used by the work-order service.
"""
from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Protocol, Sequence

logger = logging.getLogger(__name__)

ChangeType = Literal["added", "modified", "removed"]


@dataclass(frozen=True, slots=True)
class Document:
    id: str
    data: dict[str, Any]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass(frozen=True, slots=True)
class DocumentChange:
    type: ChangeType
    document: Document


@dataclass(slots=True)
class ChangeBatch:
    """Snapshot delivered to subscribers: full result set plus what changed."""

    documents: list[Document]
    changes: list[DocumentChange] = field(default_factory=list)
    initial: bool = False

    @property
    def ids(self) -> set[str]:
        return {doc.id for doc in self.documents}


@dataclass(frozen=True, slots=True)
class Filter:
    field: str
    op: Literal["==", "in"]
    value: Any

    def matches(self, data: dict[str, Any]) -> bool:
        current = data.get(self.field)
        if self.op == "in":
            return current in self.value
        return current == self.value


SnapshotCallback = Callable[[ChangeBatch], None]
ErrorCallback = Callable[[Exception], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class DocumentStore(Protocol):
    """Persistence contract consumed by the engine."""

    def subscribe(
        self,
        collection: str,
        on_next: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        *,
        where: Sequence[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> Subscription: ...

    def query(self, collection: str, where: Sequence[Filter] | None = None) -> list[Document]: ...

    def get(self, collection: str, doc_id: str) -> Document | None: ...

    def add(self, collection: str, data: dict[str, Any], *, doc_id: str | None = None) -> str: ...

    def update(self, collection: str, doc_id: str, changes: dict[str, Any]) -> None: ...

    def delete(self, collection: str, doc_id: str) -> None: ...


def _apply_query(
    rows: dict[str, dict[str, Any]],
    where: Sequence[Filter] | None,
    order_by: str | None,
    descending: bool,
    limit: int | None,
) -> list[Document]:
    docs = [Document(doc_id, data) for doc_id, data in rows.items() if all(f.matches(data) for f in where or ())]
    if order_by:
        present = [doc for doc in docs if doc.data.get(order_by) is not None]
        missing = [doc for doc in docs if doc.data.get(order_by) is None]
        present.sort(key=lambda doc: doc.data[order_by], reverse=descending)
        docs = present + missing
    if limit is not None:
        docs = docs[:limit]
    return docs


class _InMemorySubscription:
    def __init__(
        self,
        store: "InMemoryDocumentStore",
        collection: str,
        on_next: SnapshotCallback,
        on_error: ErrorCallback | None,
        where: Sequence[Filter] | None,
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> None:
        self._store = store
        self.collection = collection
        self.on_next = on_next
        self.on_error = on_error
        self.where = list(where or ())
        self.order_by = order_by
        self.descending = descending
        self.limit = limit
        self.active = True
        self.last: dict[str, dict[str, Any]] = {}

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._store._detach(self)


class InMemoryDocumentStore:
    """Process-local store that publishes change batches synchronously."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._subscriptions: dict[str, list[_InMemorySubscription]] = {}

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _rows(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def _detach(self, subscription: _InMemorySubscription) -> None:
        subs = self._subscriptions.get(subscription.collection, [])
        if subscription in subs:
            subs.remove(subscription)

    def _publish(self, subscription: _InMemorySubscription, *, initial: bool = False) -> None:
        documents = _apply_query(
            self._rows(subscription.collection),
            subscription.where,
            subscription.order_by,
            subscription.descending,
            subscription.limit,
        )
        current = {doc.id: doc.data for doc in documents}
        changes: list[DocumentChange] = []
        for doc in documents:
            previous = subscription.last.get(doc.id)
            if previous is None:
                changes.append(DocumentChange("added", doc))
            elif previous != doc.data:
                changes.append(DocumentChange("modified", doc))
        for doc_id, data in subscription.last.items():
            if doc_id not in current:
                changes.append(DocumentChange("removed", Document(doc_id, data)))

        if not changes and not initial:
            return
        subscription.last = copy.deepcopy(current)
        batch = ChangeBatch(documents=copy.deepcopy(documents), changes=changes, initial=initial)
        try:
            subscription.on_next(batch)
        except Exception:
            logger.exception("snapshot listener on %s failed", subscription.collection)

    def _notify(self, collection: str) -> None:
        for subscription in list(self._subscriptions.get(collection, [])):
            if subscription.active:
                self._publish(subscription)

    # ------------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------------
    def subscribe(
        self,
        collection: str,
        on_next: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        *,
        where: Sequence[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> Subscription:
        subscription = _InMemorySubscription(
            self, collection, on_next, on_error, where, order_by, descending, limit
        )
        self._subscriptions.setdefault(collection, []).append(subscription)
        self._publish(subscription, initial=True)
        return subscription

    def query(self, collection: str, where: Sequence[Filter] | None = None) -> list[Document]:
        return copy.deepcopy(_apply_query(self._rows(collection), where, None, False, None))

    def get(self, collection: str, doc_id: str) -> Document | None:
        data = self._rows(collection).get(doc_id)
        if data is None:
            return None
        return Document(doc_id, copy.deepcopy(data))

    def add(self, collection: str, data: dict[str, Any], *, doc_id: str | None = None) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        self._rows(collection)[doc_id] = copy.deepcopy(data)
        self._notify(collection)
        return doc_id

    def update(self, collection: str, doc_id: str, changes: dict[str, Any]) -> None:
        rows = self._rows(collection)
        if doc_id not in rows:
            raise KeyError(f"{collection}/{doc_id} does not exist")
        rows[doc_id] = {**rows[doc_id], **copy.deepcopy(changes)}
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        if self._rows(collection).pop(doc_id, None) is not None:
            self._notify(collection)

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def emit_error(self, collection: str, error: Exception) -> None:
        """Terminate every listener on ``collection`` with ``error``."""

        for subscription in list(self._subscriptions.get(collection, [])):
            subscription.unsubscribe()
            if subscription.on_error is not None:
                subscription.on_error(error)

    def subscriber_count(self, collection: str) -> int:
        return len(self._subscriptions.get(collection, []))

    def reset(self) -> None:
        for subs in self._subscriptions.values():
            for subscription in subs:
                subscription.active = False
        self._subscriptions.clear()
        self._collections.clear()
