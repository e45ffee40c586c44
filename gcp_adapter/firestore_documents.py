from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Sequence, TypeVar

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore

from vitrine_core.errors import NotFoundError, RecoverableError, VitrineError
from vitrine_core.stores.interfaces import QueryFilter, StoredDocument

T = TypeVar("T")


def _apply_filters(query: Any, filters: Sequence[QueryFilter]) -> Any:
    for field, op, value in filters:
        query = query.where(field, op, value)
    return query


def _to_stored(snapshot: Any) -> StoredDocument:
    return StoredDocument(id=snapshot.id, data=snapshot.to_dict() or {})


@contextmanager
def _firestore_call(action: str) -> Iterator[None]:
    try:
        yield
    except gcp_exceptions.NotFound as exc:
        raise NotFoundError(f"Document not found during {action}: {exc}") from exc
    except gcp_exceptions.GoogleAPICallError as exc:
        raise RecoverableError(f"Firestore {action} failed: {exc}") from exc


class FirestoreTransaction:
    def __init__(self, client: firestore.Client, transaction: Any) -> None:
        self.client = client
        self.transaction = transaction

    def _doc(self, collection: str, doc_id: str) -> Any:
        return self.client.collection(collection).document(doc_id)

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        snapshot = self._doc(collection, doc_id).get(transaction=self.transaction)
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        *,
        limit: int | None = None,
    ) -> list[StoredDocument]:
        query = _apply_filters(self.client.collection(collection), filters)
        if limit is not None:
            query = query.limit(limit)
        snapshots = query.stream(transaction=self.transaction)
        return [_to_stored(item) for item in snapshots]

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        self.transaction.set(self._doc(collection, doc_id), data, merge=merge)

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self.transaction.update(self._doc(collection, doc_id), data)

    def delete(self, collection: str, doc_id: str) -> None:
        self.transaction.delete(self._doc(collection, doc_id))


@dataclass(frozen=True)
class FirestoreDocumentStore:
    client: firestore.Client

    def _doc(self, collection: str, doc_id: str) -> Any:
        return self.client.collection(collection).document(doc_id)

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with _firestore_call("get"):
            snapshot = self._doc(collection, doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        with _firestore_call("set"):
            self._doc(collection, doc_id).set(data, merge=merge)

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        with _firestore_call("update"):
            self._doc(collection, doc_id).update(data)

    def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[StoredDocument]:
        query = _apply_filters(self.client.collection(collection), filters)
        if order_by:
            direction = (
                firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            )
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)
        with _firestore_call("query"):
            return [_to_stored(item) for item in query.stream()]

    def new_id(self, collection: str) -> str:
        return self.client.collection(collection).document().id

    def run_transaction(self, fn: Callable[[FirestoreTransaction], T]) -> T:
        @firestore.transactional
        def _txn(transaction: firestore.Transaction) -> T:
            return fn(FirestoreTransaction(self.client, transaction))

        try:
            return _txn(self.client.transaction())
        except VitrineError:
            raise
        except gcp_exceptions.NotFound as exc:
            raise NotFoundError(f"Document not found: {exc}") from exc
        except Exception as exc:  # pragma: no cover - infrastructure errors
            raise RecoverableError(f"Firestore transaction failed: {exc}") from exc
