from __future__ import annotations

import os
import shutil
import tempfile

from vitrine_core.assets.types import AssetFile
from vitrine_core.errors import VitrineError
from vitrine_core.logging import get_logger
from vitrine_core.storage.blobs import BlobStore
from vitrine_core.storage.paths import key_basename

logger = get_logger(__name__)


def make_workdir(media_id: str) -> str:
    return tempfile.mkdtemp(prefix=f"vitrine-{media_id}-")


def cleanup_workdir(path: str | None) -> None:
    if path:
        shutil.rmtree(path, ignore_errors=True)


def stage_download(blobs: BlobStore, key: str, workdir: str) -> str:
    local_path = os.path.join(workdir, f"original-{key_basename(key)}")
    size = blobs.download(key, local_path)
    logger.info(
        "Original staged",
        extra={"storage_path": key, "size_bytes": size},
    )
    return local_path


def publish_derivative(
    blobs: BlobStore,
    local_path: str,
    key: str,
    content_type: str,
) -> AssetFile:
    """Upload a local derivative and return its durable descriptor."""
    size = os.path.getsize(local_path)
    blobs.upload(local_path, key, content_type)
    url = blobs.mint_durable_read_url(key)
    return AssetFile(storage_path=key, download_url=url, size_bytes=size)


def delete_original(blobs: BlobStore, key: str, media_id: str) -> bool:
    try:
        blobs.delete(key)
    except VitrineError as exc:
        logger.warning(
            "Original delete failed",
            extra={
                "media_id": media_id,
                "storage_path": key,
                "error_message": str(exc),
            },
        )
        return False
    logger.info(
        "Original deleted",
        extra={"media_id": media_id, "storage_path": key},
    )
    return True


def remove_local(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        return
