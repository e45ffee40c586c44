from vitrine_core.stores.interfaces import (
    DocumentStore,
    QueryFilter,
    StoredDocument,
    Transaction,
)
from vitrine_core.stores.memory_store import InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "QueryFilter",
    "StoredDocument",
    "Transaction",
]
