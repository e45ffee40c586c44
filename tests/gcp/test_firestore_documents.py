from __future__ import annotations

import itertools

import pytest
from google.api_core import exceptions as gcp_exceptions

from gcp_adapter import firestore_documents as fs_docs
from vitrine_core.errors import NotFoundError, PreconditionError, RecoverableError

_ids = itertools.count(1)


class _Snapshot:
    def __init__(self, doc_id: str, data: dict | None):
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict | None:
        return dict(self._data) if self._data is not None else None


class _Document:
    def __init__(self, store: dict, doc_id: str):
        self.store = store
        self.id = doc_id

    def get(self, transaction=None):
        return _Snapshot(self.id, self.store.get(self.id))

    def set(self, data: dict, merge: bool = False) -> None:
        if merge and self.id in self.store:
            self.store[self.id].update(data)
        else:
            self.store[self.id] = dict(data)

    def update(self, data: dict) -> None:
        if self.id not in self.store:
            raise gcp_exceptions.NotFound("missing document")
        self.store[self.id].update(data)

    def delete(self) -> None:
        self.store.pop(self.id, None)


class _Query:
    def __init__(self, store: dict):
        self.store = store
        self.filters: list[tuple[str, str, object]] = []
        self._limit: int | None = None

    def where(self, field: str, op: str, value: object) -> "_Query":
        self.filters.append((field, op, value))
        return self

    def limit(self, limit: int) -> "_Query":
        self._limit = limit
        return self

    def stream(self, transaction=None):
        count = 0
        for doc_id, data in self.store.items():
            if all(data.get(f) == v for f, _op, v in self.filters):
                yield _Snapshot(doc_id, data)
                count += 1
                if self._limit is not None and count >= self._limit:
                    break


class _Collection:
    def __init__(self, store: dict):
        self.store = store

    def document(self, doc_id: str | None = None) -> _Document:
        return _Document(self.store, doc_id or f"auto-{next(_ids)}")

    def where(self, field: str, op: str, value: object) -> _Query:
        return _Query(self.store).where(field, op, value)


class _Transaction:
    def set(self, doc: _Document, data: dict, merge: bool = False) -> None:
        doc.set(data, merge=merge)

    def update(self, doc: _Document, data: dict) -> None:
        doc.update(data)

    def delete(self, doc: _Document) -> None:
        doc.delete()


class _Client:
    def __init__(self):
        self.collections: dict[str, dict] = {}

    def collection(self, name: str) -> _Collection:
        return _Collection(self.collections.setdefault(name, {}))

    def transaction(self) -> _Transaction:
        return _Transaction()


@pytest.fixture
def client(monkeypatch) -> _Client:
    monkeypatch.setattr(fs_docs.firestore, "transactional", lambda fn: fn)
    return _Client()


def test_get_set_update(client):
    store = fs_docs.FirestoreDocumentStore(client=client)

    assert store.get("media", "m1") is None
    store.set("media", "m1", {"processed": False})
    store.update("media", "m1", {"processed": True})

    assert store.get("media", "m1") == {"processed": True}
    with pytest.raises(NotFoundError):
        store.update("media", "missing", {"processed": True})


def test_new_id_uses_auto_ids(client):
    store = fs_docs.FirestoreDocumentStore(client=client)
    assert store.new_id("work_orders").startswith("auto-")


def test_transaction_reads_and_writes(client):
    store = fs_docs.FirestoreDocumentStore(client=client)
    store.set("work_orders", "w1", {"sourceRequestId": "r1", "status": "issued"})

    def _txn(transaction):
        matches = transaction.query("work_orders", [("sourceRequestId", "==", "r1")])
        transaction.update("work_orders", matches[0].id, {"status": "completed"})
        transaction.delete("service_requests", "r1")
        return matches[0].id

    assert store.run_transaction(_txn) == "w1"
    assert store.get("work_orders", "w1")["status"] == "completed"


def test_transaction_errors(client):
    store = fs_docs.FirestoreDocumentStore(client=client)

    def _rejects(transaction):
        raise PreconditionError("not eligible")

    def _breaks(transaction):
        raise RuntimeError("deadline exceeded")

    with pytest.raises(PreconditionError):
        store.run_transaction(_rejects)
    with pytest.raises(RecoverableError):
        store.run_transaction(_breaks)


def test_outages_are_recoverable(client, monkeypatch):
    store = fs_docs.FirestoreDocumentStore(client=client)

    def _unavailable(*args, **kwargs):
        raise gcp_exceptions.ServiceUnavailable("firestore is down")

    monkeypatch.setattr(_Document, "get", _unavailable)
    monkeypatch.setattr(_Document, "set", _unavailable)
    monkeypatch.setattr(_Query, "stream", _unavailable)

    with pytest.raises(RecoverableError, match="get"):
        store.get("media", "m1")
    with pytest.raises(RecoverableError, match="set"):
        store.set("media", "m1", {"processed": False})
    with pytest.raises(RecoverableError, match="query"):
        store.query("media", [("mediaId", "==", "m1")])
