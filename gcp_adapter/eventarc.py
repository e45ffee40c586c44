from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Mapping

from vitrine_core.errors import ValidationError
from vitrine_core.ingestion.storage_event import UploadEvent

# Eventarc CloudEvent type and the Pub/Sub notification attribute for the same.
FINALIZE_EVENT_TYPES = frozenset(
    {"google.cloud.storage.object.v1.finalized", "OBJECT_FINALIZE"}
)


@dataclass(frozen=True)
class StorageNotification:
    """A storage notification reduced to its id, type and object resource."""

    event_id: str | None
    event_type: str | None
    resource: dict[str, Any]

    @property
    def is_finalize(self) -> bool:
        # Deliveries without a type only come from finalize-only triggers.
        return self.event_type is None or self.event_type in FINALIZE_EVENT_TYPES


def read_notification(headers: Mapping[str, str], body: Any) -> StorageNotification:
    """Accept structured CloudEvents, binary CloudEvents and Pub/Sub pushes."""
    if not isinstance(body, dict):
        raise ValidationError("Event body must be a JSON object")

    if "specversion" in body:
        return StorageNotification(
            event_id=_optional_str(body.get("id")),
            event_type=_optional_str(body.get("type")),
            resource=_resource(body.get("data")),
        )

    message = body.get("message")
    if isinstance(message, dict):
        attributes = message.get("attributes") or {}
        return StorageNotification(
            event_id=_optional_str(message.get("messageId")),
            event_type=_optional_str(attributes.get("eventType")),
            resource=_resource(_decode_message_data(message.get("data"))),
        )

    return StorageNotification(
        event_id=_optional_str(headers.get("ce-id")),
        event_type=_optional_str(headers.get("ce-type")),
        resource=_resource(body),
    )


def to_upload_event(notification: StorageNotification) -> UploadEvent:
    resource = notification.resource
    bucket = _optional_str(resource.get("bucket"))
    name = _optional_str(resource.get("name"))
    generation = _optional_str(resource.get("generation"))
    if not bucket or not name or not generation:
        raise ValidationError("Storage object is missing bucket, name or generation")
    return UploadEvent(
        bucket=bucket,
        name=name,
        generation=generation,
        content_type=_optional_str(resource.get("contentType")),
        size=_size(resource.get("size")),
        metadata={
            str(key): str(value)
            for key, value in (resource.get("metadata") or {}).items()
            if value is not None
        },
    )


def _resource(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError("Event carries no storage object")
    return data


def _decode_message_data(raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(base64.b64decode(raw, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError("Pub/Sub message data is not base64 JSON") from exc


def _size(value: Any) -> int | None:
    # The storage JSON API encodes int64 fields as strings.
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
