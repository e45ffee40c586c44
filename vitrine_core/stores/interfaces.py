from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol, Sequence, TypeVar

T = TypeVar("T")

QueryFilter = tuple[str, str, Any]


@dataclass(frozen=True)
class StoredDocument:
    id: str
    data: dict[str, Any]


class Transaction(Protocol):
    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        ...

    def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        *,
        limit: int | None = None,
    ) -> list[StoredDocument]:
        ...

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        ...

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...


class DocumentStore(Protocol):
    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        ...

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        ...

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        ...

    def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[StoredDocument]:
        ...

    def new_id(self, collection: str) -> str:
        ...

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        ...
