from __future__ import annotations

import mimetypes
import shutil
import uuid
from pathlib import Path
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel

from vitrine_core.assets.documents import MediaDocuments
from vitrine_core.config import Config, get_config
from vitrine_core.errors import PermanentError, RecoverableError
from vitrine_core.ingestion import UploadEvent, modality_for_event, process_upload_event
from vitrine_core.logging import get_logger
from vitrine_core.services import create_service_app
from vitrine_core.storage.object_store import FsspecBlobStore
from vitrine_core.storage.paths import join_key
from vitrine_core.stores.memory_store import InMemoryDocumentStore

SERVICE_NAME = "vitrine-local-ingestion"

app = create_service_app(SERVICE_NAME)
logger = get_logger(__name__)

_store = InMemoryDocumentStore()


class IngestRequest(BaseModel):
    path: str
    content_type: str | None = None
    metadata: dict[str, str] = {}


class IngestResponse(BaseModel):
    status: str
    modality: str | None = None
    media_id: str | None = None
    variants: list[str] = []
    trace_id: str


def _upload_prefix(content_type: str, config: Config) -> str:
    if content_type.startswith("image/"):
        return config.image_upload_prefix
    if content_type.startswith("video/"):
        return config.video_upload_prefix
    raise PermanentError(f"Unsupported content type: {content_type}")


@app.get("/media/{media_id}")
async def get_media(media_id: str) -> dict[str, Any]:
    config = get_config()
    media = _store.get(config.media_collection, media_id)
    if media is None:
        raise HTTPException(status_code=404, detail="Media not found")
    return media


@app.post("/ingest", response_model=IngestResponse)
async def ingest(payload: IngestRequest) -> IngestResponse:
    config = get_config()
    trace_id = str(uuid.uuid4())

    path = Path(payload.path)
    if not path.exists() or not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    content_type = payload.content_type or mimetypes.guess_type(path.as_posix())[0]
    if not content_type:
        raise HTTPException(status_code=400, detail="Content type is required")
    try:
        prefix = _upload_prefix(content_type, config)
    except PermanentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    # Stage the file into the local bucket the way a browser upload would.
    blobs = FsspecBlobStore(config.bucket_uri())
    object_name = join_key(prefix, f"{uuid.uuid4().hex[:8]}-{path.name}")
    target = Path(blobs.path_for(object_name))
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(path, target)

    event = UploadEvent(
        bucket=config.local_bucket_root or "local",
        name=object_name,
        generation="local",
        content_type=content_type,
        size=path.stat().st_size,
        metadata={"originalFilename": path.name, **payload.metadata},
    )
    if modality_for_event(event, config) is None:
        raise HTTPException(status_code=400, detail="Unsupported upload")

    documents = MediaDocuments(_store, config.media_collection)
    try:
        outcome = process_upload_event(
            event=event,
            config=config,
            documents=documents,
            blobs=blobs,
        )
    except PermanentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RecoverableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    logger.info(
        "Local ingest completed",
        extra={
            "request_id": trace_id,
            "modality": outcome.modality,
            "media_id": outcome.media_id,
            "object_name": object_name,
        },
    )
    return IngestResponse(
        status=outcome.status,
        modality=outcome.modality,
        media_id=outcome.media_id,
        variants=list(outcome.variants),
        trace_id=trace_id,
    )
