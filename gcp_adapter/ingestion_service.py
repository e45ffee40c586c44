import json
import time
from functools import lru_cache

from fastapi import HTTPException, Request
from google.cloud import firestore, storage
from pydantic import BaseModel

from gcp_adapter.eventarc import StorageNotification, read_notification, to_upload_event
from gcp_adapter.firestore_documents import FirestoreDocumentStore
from gcp_adapter.gcs_blobs import GcsBlobStore
from vitrine_core.assets.documents import MediaDocuments
from vitrine_core.config import Config, get_config
from vitrine_core.errors import PermanentError, RecoverableError, ValidationError
from vitrine_core.ingestion import PipelineOutcome, UploadEvent, process_upload_event
from vitrine_core.logging import get_logger
from vitrine_core.services import create_service_app
from vitrine_core.storage.blobs import BlobStore
from vitrine_core.storage.object_store import FsspecBlobStore
from vitrine_core.stores.interfaces import DocumentStore

SERVICE_NAME = "vitrine-ingestion"

app = create_service_app(SERVICE_NAME)
logger = get_logger(__name__)


class IngestResponse(BaseModel):
    status: str
    event_id: str | None = None
    media_id: str | None = None
    modality: str | None = None
    variants: list[str] = []


@lru_cache(maxsize=1)
def _firestore_client() -> firestore.Client:
    return firestore.Client()


@lru_cache(maxsize=1)
def _storage_client() -> storage.Client:
    return storage.Client()


def _document_store() -> DocumentStore:
    return FirestoreDocumentStore(client=_firestore_client())


def _blob_store(config: Config) -> BlobStore:
    if config.storage_backend == "gcs":
        return GcsBlobStore(client=_storage_client(), bucket_name=config.media_bucket)
    return FsspecBlobStore(config.bucket_uri())


def _skip_reason(
    notification: StorageNotification,
    event: UploadEvent,
    config: Config,
) -> str | None:
    if not notification.is_finalize:
        return f"event type {notification.event_type}"
    if config.storage_backend == "gcs" and event.bucket != config.media_bucket:
        return f"bucket {event.bucket}"
    return None


def _run_pipeline(
    event: UploadEvent,
    config: Config,
    log_extra: dict[str, object],
) -> PipelineOutcome:
    """Run the pipeline; raise for redelivery, return ``failed`` to acknowledge."""
    documents = MediaDocuments(_document_store(), config.media_collection)
    try:
        return process_upload_event(
            event=event,
            config=config,
            documents=documents,
            blobs=_blob_store(config),
        )
    except RecoverableError as exc:
        logger.exception(
            "Ingest will be redelivered",
            extra={**log_extra, "error_code": "recoverable", "error_message": str(exc)},
        )
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except PermanentError as exc:
        logger.error(
            "Ingest abandoned",
            extra={**log_extra, "error_code": "permanent", "error_message": str(exc)},
        )
        return PipelineOutcome(status="failed")


@app.post("/ingest", response_model=IngestResponse)
async def ingest(request: Request) -> IngestResponse:
    started = time.monotonic()
    try:
        config = get_config()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    try:
        notification = read_notification(request.headers, await request.json())
        event = to_upload_event(notification)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    log_extra: dict[str, object] = {
        "request_id": notification.event_id,
        "correlation_id": request.state.correlation_id,
        "bucket": event.bucket,
        "object_name": event.name,
        "content_type": event.content_type,
    }
    skip = _skip_reason(notification, event, config)
    if skip:
        logger.info(f"Ignoring {skip}", extra=log_extra)
        return IngestResponse(status="ignored", event_id=notification.event_id)

    outcome = _run_pipeline(event, config, log_extra)
    logger.info(
        "Ingest handled",
        extra={
            **log_extra,
            "status": outcome.status,
            "modality": outcome.modality,
            "media_id": outcome.media_id,
            "variants": list(outcome.variants) or None,
            "duration_ms": int((time.monotonic() - started) * 1000),
        },
    )
    return IngestResponse(
        status=outcome.status,
        event_id=notification.event_id,
        media_id=outcome.media_id,
        modality=outcome.modality,
        variants=list(outcome.variants),
    )
