from __future__ import annotations

from typing import Any

from vitrine_core.assets.documents import utc_now
from vitrine_core.auth.guards import require_auth, require_str
from vitrine_core.auth.types import AuthContext
from vitrine_core.config import Config
from vitrine_core.errors import NotFoundError, PreconditionError
from vitrine_core.logging import get_logger
from vitrine_core.storage.blobs import BlobStore
from vitrine_core.stores.interfaces import DocumentStore

logger = get_logger(__name__)

_PREFERRED_DERIVATIVE = {
    "image": "webp_medium",
    "video": "webm_720",
}

MEDIA_REFERENCED = "media-referenced-by-mediaset"


def preferred_derivative_path(media: dict[str, Any]) -> str:
    derivatives = (media.get("paths") or {}).get("derivatives") or {}
    if not derivatives:
        raise PreconditionError("Media has no derivatives")
    preferred = _PREFERRED_DERIVATIVE.get(str(media.get("type")))
    entry = derivatives.get(preferred) if preferred else None
    if entry is None:
        entry = next(iter(derivatives.values()))
    storage_path = entry.get("storagePath") if isinstance(entry, dict) else None
    if not storage_path:
        raise PreconditionError("Derivative is missing its storage path")
    return storage_path


def _load_media(store: DocumentStore, config: Config, media_id: str) -> dict[str, Any]:
    media = store.get(config.media_collection, media_id)
    if media is None:
        raise NotFoundError(f"Media not found: {media_id}")
    return media


def generate_download_url(
    store: DocumentStore,
    blobs: BlobStore,
    config: Config,
    auth: AuthContext | None,
    data: dict[str, Any] | None,
) -> dict[str, Any]:
    require_auth(auth)
    media_id = require_str(data, "mediaId")
    media = _load_media(store, config, media_id)
    if media.get("deletedAt"):
        raise PreconditionError(f"Media is deleted: {media_id}")
    existing = media.get("downloadURL")
    if existing:
        return {"downloadURL": existing}

    url = blobs.mint_durable_read_url(preferred_derivative_path(media))
    store.update(
        config.media_collection,
        media_id,
        {"downloadURL": url, "modifiedAt": utc_now()},
    )
    return {"downloadURL": url}


def regenerate_download_url(
    store: DocumentStore,
    blobs: BlobStore,
    config: Config,
    auth: AuthContext | None,
    data: dict[str, Any] | None,
) -> dict[str, Any]:
    require_auth(auth)
    media_id = require_str(data, "mediaId")
    media = _load_media(store, config, media_id)
    url = blobs.mint_durable_read_url(preferred_derivative_path(media), rotate=True)
    store.update(
        config.media_collection,
        media_id,
        {"downloadURL": url, "modifiedAt": utc_now()},
    )
    logger.info(
        "Download URL rotated",
        extra={"media_id": media_id, "operation": "regenerate_download_url"},
    )
    return {"downloadURL": url}


def is_media_referenced(
    store: DocumentStore,
    config: Config,
    media: dict[str, Any],
) -> bool:
    """True when the media belongs to a media set that exists and is live."""
    media_set_id = media.get("mediaSetId")
    if not media_set_id:
        return False
    media_set = store.get(config.mediasets_collection, str(media_set_id))
    return media_set is not None and not media_set.get("deletedAt")


def validate_delete(
    store: DocumentStore,
    blobs: BlobStore,
    config: Config,
    auth: AuthContext | None,
    data: dict[str, Any] | None,
) -> dict[str, Any]:
    require_auth(auth)
    media_id = require_str(data, "mediaId")
    media = _load_media(store, config, media_id)
    if is_media_referenced(store, config, media):
        return {"allowed": False, "reason": MEDIA_REFERENCED}

    now = utc_now()
    store.update(
        config.media_collection,
        media_id,
        {"deletedAt": now, "modifiedAt": now},
    )
    logger.info(
        "Media soft-deleted",
        extra={"media_id": media_id, "operation": "validate_delete"},
    )
    return {"allowed": True}
