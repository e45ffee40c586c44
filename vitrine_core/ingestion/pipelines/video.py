from __future__ import annotations

import os
import time
from typing import Callable

from vitrine_core.assets.documents import MediaDocuments, utc_now
from vitrine_core.assets.types import AssetFile, initial_media_document
from vitrine_core.config import VIDEO_RESOLUTIONS, Config
from vitrine_core.ingestion.media import (
    extract_poster,
    probe_metadata,
    transcode_to_webm,
)
from vitrine_core.ingestion.metadata import resolve_upload
from vitrine_core.ingestion.pipelines.types import PipelineResult
from vitrine_core.ingestion.runner import run_bounded
from vitrine_core.ingestion.stages import TRANSCODE_CHECKPOINTS, VideoStage
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
from vitrine_core.storage.paths import (
    poster_key,
    video_rendition_key,
    video_variant_name,
)

logger = get_logger(__name__)

WEBM_CONTENT_TYPE = "video/webm"
WEBP_CONTENT_TYPE = "image/webp"


def _rendition_job(
    *,
    source_path: str,
    workdir: str,
    height: int,
    config: Config,
    blobs: BlobStore,
    media_id: str,
) -> Callable[[], tuple[str, AssetFile]]:
    def _job() -> tuple[str, AssetFile]:
        out_path = os.path.join(workdir, f"video_{height}.webm")
        transcode_to_webm(source_path, out_path, height, crf=config.video_crf)
        key = video_rendition_key(config.derivative_prefix, media_id, height)
        try:
            asset = publish_derivative(blobs, out_path, key, WEBM_CONTENT_TYPE)
        finally:
            remove_local(out_path)
        return video_variant_name(height), asset

    return _job


def ingest_video(
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
        media_type="video",
        stage=VideoStage.CREATED.label,
        progress=VideoStage.CREATED.progress,
        now=utc_now(),
    )
    if not documents.create_initial(initial):
        logger.info(
            "Video already processed, skipping",
            extra={"media_id": media_id, "storage_path": event.name},
        )
        return PipelineResult(media_id=media_id, status="skipped")

    workdir = make_workdir(media_id)
    try:
        documents.record_stage(media_id, VideoStage.DOWNLOAD_START)
        local_path = stage_download(blobs, event.name, workdir)
        documents.record_stage(media_id, VideoStage.DOWNLOADED)

        probe = probe_metadata(local_path)
        duration = int(round(probe.duration_seconds))
        logger.info(
            "Video probed",
            extra={"media_id": media_id, "duration_ms": duration * 1000},
        )
        documents.record_stage(media_id, VideoStage.METADATA)

        poster_path = extract_poster(
            local_path,
            os.path.join(workdir, "poster.webp"),
            offset_seconds=config.poster_offset_seconds,
            width=config.poster_width,
        )
        documents.record_stage(media_id, VideoStage.POSTER_GENERATED)
        poster = publish_derivative(
            blobs,
            poster_path,
            poster_key(config.derivative_prefix, media_id),
            WEBP_CONTENT_TYPE,
        )
        remove_local(poster_path)
        documents.record_stage(media_id, VideoStage.POSTER_UPLOADED)

        jobs = [
            _rendition_job(
                source_path=local_path,
                workdir=workdir,
                height=height,
                config=config,
                blobs=blobs,
                media_id=media_id,
            )
            for height in VIDEO_RESOLUTIONS
        ]
        completed = 0

        def _on_rendition(index: int, result: tuple[str, AssetFile]) -> None:
            nonlocal completed
            name, asset = result
            logger.info(
                "Video derivative uploaded",
                extra={
                    "media_id": media_id,
                    "variant": name,
                    "storage_path": asset.storage_path,
                    "size_bytes": asset.size_bytes,
                },
            )
            checkpoint = TRANSCODE_CHECKPOINTS[
                min(completed, len(TRANSCODE_CHECKPOINTS) - 1)
            ]
            completed += 1
            documents.record_stage(media_id, checkpoint)

        renditions = run_bounded(
            jobs,
            min(config.transcode_concurrency, len(VIDEO_RESOLUTIONS) - 1),
            on_result=_on_rendition,
        )
        derivatives = {name: asset.to_dict() for name, asset in renditions}
        documents.record_stage(media_id, VideoStage.DERIVATIVES_READY)

        delete_original(blobs, event.name, media_id)
        documents.record_stage(media_id, VideoStage.ORIGINAL_DELETED)

        documents.finalize(
            media_id,
            {
                "paths.derivatives": derivatives,
                "paths.poster": poster.to_dict(),
                "width": probe.width or 0,
                "height": probe.height or 0,
                "duration": duration,
                "codec": "vp9",
                "bitrate": probe.bitrate,
            },
        )
        documents.record_stage(media_id, VideoStage.DONE)
    finally:
        cleanup_workdir(workdir)

    return PipelineResult(
        media_id=media_id,
        status="completed",
        variants=tuple(derivatives),
        duration_ms=int((time.monotonic() - started) * 1000),
    )
