from __future__ import annotations

import copy
import threading
import uuid
from typing import Any, Callable, Sequence, TypeVar

from vitrine_core.errors import NotFoundError
from vitrine_core.stores.interfaces import QueryFilter, StoredDocument

T = TypeVar("T")

_MISSING = object()


def _deep_merge(target: dict[str, Any], data: dict[str, Any]) -> None:
    for key, value in data.items():
        current = target.get(key, _MISSING)
        if isinstance(value, dict) and isinstance(current, dict):
            _deep_merge(current, value)
        else:
            target[key] = copy.deepcopy(value)


def _apply_update(target: dict[str, Any], data: dict[str, Any]) -> None:
    # Keys may be dotted field paths, as in Firestore's update().
    for key, value in data.items():
        parts = key.split(".")
        node = target
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = copy.deepcopy(value)


def _field_value(data: dict[str, Any], field: str) -> Any:
    node: Any = data
    for part in field.split("."):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _matches(data: dict[str, Any], filters: Sequence[QueryFilter]) -> bool:
    for field, op, expected in filters:
        value = _field_value(data, field)
        if op == "==":
            if value is _MISSING or value != expected:
                return False
        elif op == "!=":
            if value is _MISSING or value == expected:
                return False
        elif op == "in":
            if value is _MISSING or value not in expected:
                return False
        else:
            raise ValueError(f"Unsupported query operator: {op}")
    return True


class InMemoryDocumentStore:
    """Process-local document store with Firestore-like semantics.

    Transactions hold a store-wide lock, buffer their writes and apply them
    only when the transaction function returns, so a raised error leaves the
    store untouched. Reads after the first buffered write are rejected, as
    Firestore does.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            data = self._collection(collection).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        with self._lock:
            docs = self._collection(collection)
            if merge and doc_id in docs:
                _deep_merge(docs[doc_id], data)
            else:
                docs[doc_id] = copy.deepcopy(data)

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        with self._lock:
            docs = self._collection(collection)
            if doc_id not in docs:
                raise NotFoundError(f"Document not found: {collection}/{doc_id}")
            _apply_update(docs[doc_id], data)

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._collection(collection).pop(doc_id, None)

    def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[StoredDocument]:
        with self._lock:
            matches = [
                StoredDocument(id=doc_id, data=copy.deepcopy(data))
                for doc_id, data in self._collection(collection).items()
                if _matches(data, filters)
            ]
        if order_by:
            matches = [
                doc
                for doc in matches
                if _field_value(doc.data, order_by) is not _MISSING
            ]
            matches.sort(
                key=lambda doc: _field_value(doc.data, order_by),
                reverse=descending,
            )
        if limit is not None:
            matches = matches[:limit]
        return matches

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    def run_transaction(self, fn: Callable[["MemoryTransaction"], T]) -> T:
        with self._lock:
            transaction = MemoryTransaction(self)
            result = fn(transaction)
            transaction.commit()
            return result


class MemoryTransaction:
    def __init__(self, store: InMemoryDocumentStore) -> None:
        self._store = store
        self._writes: list[Callable[[], None]] = []

    def _check_read(self) -> None:
        if self._writes:
            raise RuntimeError("Transaction reads must happen before writes")

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        self._check_read()
        return self._store.get(collection, doc_id)

    def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        *,
        limit: int | None = None,
    ) -> list[StoredDocument]:
        self._check_read()
        return self._store.query(collection, filters, limit=limit)

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        payload = copy.deepcopy(data)
        self._writes.append(
            lambda: self._store.set(collection, doc_id, payload, merge=merge)
        )

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        if self._store.get(collection, doc_id) is None:
            raise NotFoundError(f"Document not found: {collection}/{doc_id}")
        payload = copy.deepcopy(data)
        self._writes.append(lambda: self._store.update(collection, doc_id, payload))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(lambda: self._store.delete(collection, doc_id))

    def commit(self) -> None:
        for write in self._writes:
            write()
        self._writes = []
