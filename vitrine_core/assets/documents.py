from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from vitrine_core.logging import get_logger
from vitrine_core.stores.interfaces import DocumentStore, Transaction

if TYPE_CHECKING:
    from vitrine_core.ingestion.stages import PipelineStage

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MediaDocuments:
    """Media document writes used by the ingestion pipelines."""

    def __init__(self, store: DocumentStore, collection: str = "media") -> None:
        self.store = store
        self.collection = collection

    def new_id(self) -> str:
        return self.store.new_id(self.collection)

    def get(self, media_id: str) -> dict[str, Any] | None:
        return self.store.get(self.collection, media_id)

    def create_initial(self, doc: dict[str, Any]) -> bool:
        """Write the initial shape unless the document is already processed.

        Returns False when an earlier run already completed this media.
        """
        media_id = doc["id"]

        def _txn(transaction: Transaction) -> bool:
            existing = transaction.get(self.collection, media_id)
            if existing is not None and existing.get("processed") is True:
                return False
            transaction.set(self.collection, media_id, doc)
            return True

        return self.store.run_transaction(_txn)

    def record_stage(self, media_id: str, stage: PipelineStage) -> None:
        self.store.set(
            self.collection,
            media_id,
            {
                "processing": {
                    "stage": stage.label,
                    "progress": stage.progress,
                    "updatedAt": utc_now(),
                }
            },
            merge=True,
        )
        logger.info(
            "Media stage recorded",
            extra={
                "media_id": media_id,
                "stage": stage.label,
                "progress": stage.progress,
            },
        )

    def finalize(self, media_id: str, fields: dict[str, Any]) -> None:
        """Apply the final field paths and flip ``processed`` in one write."""
        payload = dict(fields)
        payload["modifiedAt"] = utc_now()
        payload["processed"] = True
        self.store.update(self.collection, media_id, payload)
