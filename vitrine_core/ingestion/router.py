from __future__ import annotations

from dataclasses import dataclass

from vitrine_core.assets.documents import MediaDocuments
from vitrine_core.config import Config
from vitrine_core.errors import PermanentError
from vitrine_core.ingestion.pipelines import image, video
from vitrine_core.ingestion.pipelines.types import PipelineResult
from vitrine_core.ingestion.storage_event import UploadEvent
from vitrine_core.logging import get_logger
from vitrine_core.storage.blobs import BlobStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class PipelineOutcome:
    status: str
    modality: str | None = None
    media_id: str | None = None
    variants: tuple[str, ...] = ()
    duration_ms: int | None = None


def modality_for_event(event: UploadEvent, config: Config) -> str | None:
    """Pick the pipeline for an event, or None when no pipeline applies."""
    content_type = event.normalized_content_type
    if content_type.startswith("image/") and event.name.startswith(
        config.image_upload_prefix
    ):
        return "image"
    if content_type.startswith("video/") and event.name.startswith(
        config.video_upload_prefix
    ):
        return "video"
    return None


def _check_size(event: UploadEvent, config: Config) -> None:
    if event.size is not None and event.size > config.max_raw_bytes:
        raise PermanentError(f"Object too large: {event.size} bytes")


def process_upload_event(
    *,
    event: UploadEvent,
    config: Config,
    documents: MediaDocuments,
    blobs: BlobStore,
) -> PipelineOutcome:
    modality = modality_for_event(event, config)
    if modality is None:
        logger.info(
            "Upload ignored",
            extra={
                "object_name": event.name,
                "content_type": event.content_type,
            },
        )
        return PipelineOutcome(status="ignored")

    _check_size(event, config)
    if modality == "image":
        result: PipelineResult = image.ingest_image(
            event=event,
            config=config,
            documents=documents,
            blobs=blobs,
        )
    else:
        result = video.ingest_video(
            event=event,
            config=config,
            documents=documents,
            blobs=blobs,
        )
    return PipelineOutcome(
        status=result.status,
        modality=modality,
        media_id=result.media_id,
        variants=result.variants,
        duration_ms=result.duration_ms,
    )
