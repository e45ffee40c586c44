from vitrine_core.ingestion.metadata import resolve_origin, resolve_upload
from vitrine_core.ingestion.storage_event import UploadEvent


def _event(metadata: dict[str, str], name: str = "uploads/images/photo.jpg"):
    return UploadEvent(
        bucket="test-media",
        name=name,
        generation="1",
        content_type="image/jpeg",
        size=1234,
        metadata=metadata,
    )


def test_upload_id_becomes_media_id():
    descriptor = resolve_upload(
        _event({"uploadId": "abc", "originalFilename": "Sunset.JPG"}),
        lambda: "generated",
    )
    assert descriptor.media_id == "abc"
    assert descriptor.upload_id == "abc"
    assert descriptor.original_filename == "Sunset.JPG"
    assert descriptor.storage_path == "uploads/images/photo.jpg"
    assert descriptor.size_bytes == 1234


def test_snake_case_fallbacks_and_generated_id():
    descriptor = resolve_upload(
        _event({"upload_id": "snake", "original_filename": "a.jpg"}),
        lambda: "generated",
    )
    assert descriptor.media_id == "snake"
    assert descriptor.original_filename == "a.jpg"

    generated = resolve_upload(_event({}), lambda: "generated")
    assert generated.media_id == "generated"
    assert generated.upload_id is None
    assert generated.original_filename == "photo.jpg"


def test_origin_defaults():
    origin = resolve_origin({})
    assert (origin.context, origin.role, origin.exhibition_id) == (
        "gallery",
        "gallery",
        None,
    )

    exhibition = resolve_origin({"originContext": "exhibition", "exhibitionId": "e1"})
    assert exhibition.context == "exhibition"
    assert exhibition.role == "attachment"
    assert exhibition.exhibition_id == "e1"


def test_origin_role_alias_and_validation():
    assert resolve_origin({"role": "feature"}).role == "feature"
    assert resolve_origin({"originRole": "attachment"}).role == "attachment"
    assert resolve_origin({"originRole": "banner"}).role == "gallery"
    assert resolve_origin({"originContext": "Exhibition"}).context == "gallery"
