from __future__ import annotations

from typing import Callable, Mapping

from vitrine_core.assets.types import ORIGIN_CONTEXTS, Origin, UploadDescriptor
from vitrine_core.ingestion.storage_event import UploadEvent
from vitrine_core.storage.paths import key_basename

_REQUESTABLE_ROLES = ("feature", "attachment")


def _first(metadata: Mapping[str, str], *keys: str) -> str | None:
    for key in keys:
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def resolve_origin(metadata: Mapping[str, str]) -> Origin:
    context = metadata.get("originContext")
    if context not in ORIGIN_CONTEXTS:
        context = "gallery"
    role = _first(metadata, "originRole", "role")
    if role not in _REQUESTABLE_ROLES:
        role = "attachment" if context == "exhibition" else "gallery"
    return Origin(
        context=context,
        exhibition_id=_first(metadata, "exhibitionId"),
        role=role,
    )


def resolve_upload(
    event: UploadEvent,
    new_id: Callable[[], str],
) -> UploadDescriptor:
    """Derive the media id, filename and origin from the object metadata."""
    metadata = event.metadata or {}
    upload_id = _first(metadata, "uploadId", "upload_id")
    media_id = upload_id or new_id()
    original_filename = _first(
        metadata, "originalFilename", "original_filename"
    ) or key_basename(event.name)
    return UploadDescriptor(
        media_id=media_id,
        upload_id=upload_id,
        original_filename=original_filename,
        storage_path=event.name,
        content_type=event.normalized_content_type or "application/octet-stream",
        size_bytes=event.size or 0,
        origin=resolve_origin(metadata),
    )
