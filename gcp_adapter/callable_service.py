from functools import lru_cache
from typing import Any, Callable

from fastapi import Request
from google.cloud import firestore, storage
from pydantic import BaseModel

from gcp_adapter.auth import authorize_request
from gcp_adapter.firestore_documents import FirestoreDocumentStore
from gcp_adapter.gcs_blobs import GcsBlobStore
from vitrine_core.assets import access
from vitrine_core.auth.types import AuthContext
from vitrine_core.config import Config, get_config
from vitrine_core.errors import OperationError, RecoverableError
from vitrine_core.logging import get_logger
from vitrine_core.services import create_service_app, error_response
from vitrine_core.storage.blobs import BlobStore
from vitrine_core.storage.object_store import FsspecBlobStore
from vitrine_core.stores.interfaces import DocumentStore
from vitrine_core.work_orders import lifecycle

SERVICE_NAME = "vitrine-callables"

app = create_service_app(SERVICE_NAME, browser_callable=True)
logger = get_logger(__name__)

_HTTP_STATUS = {
    "unauthenticated": 401,
    "invalid-argument": 400,
    "not-found": 404,
    "failed-precondition": 412,
}

CallableHandler = Callable[
    [DocumentStore, BlobStore, Config, AuthContext | None, dict[str, Any]],
    dict[str, Any],
]


def _work_order_handler(fn: Callable[..., dict[str, Any]]) -> CallableHandler:
    def _handler(store, _blobs, config, auth, data):
        return fn(store, config, auth, data)

    return _handler


HANDLERS: dict[str, CallableHandler] = {
    "createWorkOrder": _work_order_handler(lifecycle.create_work_order),
    "pauseWorkOrder": _work_order_handler(lifecycle.pause_work_order),
    "resumeWorkOrder": _work_order_handler(lifecycle.resume_work_order),
    "completeWorkOrder": _work_order_handler(lifecycle.complete_work_order),
    "deleteServiceRequest": _work_order_handler(lifecycle.delete_service_request),
    "generateDownloadUrl": access.generate_download_url,
    "regenerateDownloadUrl": access.regenerate_download_url,
    "validateDelete": access.validate_delete,
}


class CallableRequest(BaseModel):
    data: dict[str, Any] | None = None


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


@app.post("/callable/{name}")
async def invoke(name: str, payload: CallableRequest, request: Request) -> Any:
    handler = HANDLERS.get(name)
    if handler is None:
        return error_response("not-found", f"Unknown callable: {name}", 404)

    log_extra = {
        "correlation_id": request.state.correlation_id,
        "operation": name,
    }
    try:
        config = get_config()
        auth = authorize_request(request)
        result = handler(
            _document_store(),
            _blob_store(config),
            config,
            auth,
            payload.data or {},
        )
    except OperationError as exc:
        logger.info(
            "Callable rejected",
            extra={**log_extra, "error_code": exc.code, "error_message": exc.message},
        )
        return error_response(exc.code, exc.message, _HTTP_STATUS.get(exc.code, 500))
    except RecoverableError as exc:
        logger.exception(
            "Callable failed (recoverable)",
            extra={**log_extra, "error_code": "unavailable", "error_message": str(exc)},
        )
        return error_response("unavailable", str(exc), 503)
    except Exception as exc:
        logger.exception(
            "Callable failed (unexpected)",
            extra={**log_extra, "error_code": "internal", "error_message": str(exc)},
        )
        return error_response("internal", "Unexpected error", 500)

    logger.info("Callable completed", extra={**log_extra, "status": "ok"})
    return {"result": result}
