from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

MEDIA_TYPES = ("image", "video")
ORIGIN_CONTEXTS = ("gallery", "exhibition")


@dataclass(frozen=True)
class Origin:
    context: str
    exhibition_id: str | None
    role: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "context": self.context,
            "exhibitionId": self.exhibition_id,
            "role": self.role,
        }


@dataclass(frozen=True)
class AssetFile:
    storage_path: str
    download_url: str
    size_bytes: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "storagePath": self.storage_path,
            "downloadURL": self.download_url,
        }
        if self.size_bytes is not None:
            payload["sizeBytes"] = self.size_bytes
        return payload


@dataclass(frozen=True)
class UploadDescriptor:
    media_id: str
    upload_id: str | None
    original_filename: str
    storage_path: str
    content_type: str
    size_bytes: int
    origin: Origin


def initial_media_document(
    descriptor: UploadDescriptor,
    *,
    media_type: str,
    stage: str,
    progress: int,
    now: datetime,
) -> dict[str, Any]:
    """Full initial shape of a media document, written before any work."""
    if media_type not in MEDIA_TYPES:
        raise ValueError(f"Unsupported media type: {media_type}")
    doc: dict[str, Any] = {
        "id": descriptor.media_id,
        "type": media_type,
        "uploadId": descriptor.upload_id or descriptor.media_id,
        "originalFilename": descriptor.original_filename,
        "storagePath": descriptor.storage_path,
        "mediaSetId": None,
        "title": "",
        "description": "",
        "origin": descriptor.origin.to_dict(),
        "paths": {
            "original": {
                "storagePath": descriptor.storage_path,
                "downloadURL": None,
            },
            "derivatives": {},
        },
        "width": 0,
        "height": 0,
        "mimeType": descriptor.content_type,
        "sizeBytes": descriptor.size_bytes,
        "processing": {"stage": stage, "progress": progress, "updatedAt": now},
        "processed": False,
        "createdAt": now,
        "modifiedAt": now,
    }
    if media_type == "image":
        doc["blurHash"] = None
    else:
        doc["duration"] = 0
        doc["codec"] = None
        doc["bitrate"] = None
    return doc
