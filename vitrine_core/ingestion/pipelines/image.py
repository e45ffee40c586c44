from __future__ import annotations

import time

from vitrine_core.assets.documents import MediaDocuments, utc_now
from vitrine_core.assets.types import initial_media_document
from vitrine_core.config import Config
from vitrine_core.ingestion.images import compute_blurhash, create_webp_variants
from vitrine_core.ingestion.metadata import resolve_upload
from vitrine_core.ingestion.pipelines.types import PipelineResult
from vitrine_core.ingestion.stages import ImageStage
from vitrine_core.ingestion.staging import (
    cleanup_workdir,
    delete_original,
    make_workdir,
    publish_derivative,
    remove_local,
    stage_download,
)
from vitrine_core.ingestion.storage_event import UploadEvent
from vitrine_core.logging import get_logger
from vitrine_core.storage.blobs import BlobStore
from vitrine_core.storage.paths import image_variant_key

logger = get_logger(__name__)

WEBP_CONTENT_TYPE = "image/webp"


def ingest_image(
    *,
    event: UploadEvent,
    config: Config,
    documents: MediaDocuments,
    blobs: BlobStore,
) -> PipelineResult:
    started = time.monotonic()
    descriptor = resolve_upload(event, documents.new_id)
    media_id = descriptor.media_id
    initial = initial_media_document(
        descriptor,
        media_type="image",
        stage=ImageStage.CREATED.label,
        progress=ImageStage.CREATED.progress,
        now=utc_now(),
    )
    if not documents.create_initial(initial):
        logger.info(
            "Image already processed, skipping",
            extra={"media_id": media_id, "storage_path": event.name},
        )
        return PipelineResult(media_id=media_id, status="skipped")

    workdir = make_workdir(media_id)
    try:
        documents.record_stage(media_id, ImageStage.DOWNLOAD_START)
        local_path = stage_download(blobs, event.name, workdir)
        documents.record_stage(media_id, ImageStage.DOWNLOADED)

        variants = create_webp_variants(
            local_path,
            config.image_variant_widths,
            workdir,
            quality=config.webp_quality,
        )
        blur_hash = compute_blurhash(local_path) if config.blurhash_enabled else None
        documents.record_stage(media_id, ImageStage.VARIANTS_READY)

        derivatives: dict[str, dict[str, object]] = {}
        for variant in variants:
            key = image_variant_key(config.derivative_prefix, media_id, variant.name)
            asset = publish_derivative(blobs, variant.path, key, WEBP_CONTENT_TYPE)
            derivatives[variant.name] = asset.to_dict()
            remove_local(variant.path)
            logger.info(
                "Image derivative uploaded",
                extra={
                    "media_id": media_id,
                    "variant": variant.name,
                    "storage_path": key,
                    "size_bytes": asset.size_bytes,
                },
            )
        documents.record_stage(media_id, ImageStage.DERIVATIVES_READY)

        delete_original(blobs, event.name, media_id)
        documents.record_stage(media_id, ImageStage.ORIGINAL_DELETED)

        # Variants are ordered by width, the last one is the largest.
        largest = variants[-1]
        documents.finalize(
            media_id,
            {
                "paths.derivatives": derivatives,
                "width": largest.width,
                "height": largest.height,
                "blurHash": blur_hash,
            },
        )
        documents.record_stage(media_id, ImageStage.DONE)
    finally:
        cleanup_workdir(workdir)

    return PipelineResult(
        media_id=media_id,
        status="completed",
        variants=tuple(derivatives),
        duration_ms=int((time.monotonic() - started) * 1000),
    )
