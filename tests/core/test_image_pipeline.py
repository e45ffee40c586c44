from pathlib import Path

import pytest

from vitrine_core.errors import CodecError
from vitrine_core.ingestion.pipelines import image as image_pipeline
from vitrine_core.ingestion.pipelines.image import ingest_image
from vitrine_core.ingestion.stages import ImageStage

KEY = "uploads/images/123/photo.jpg"


@pytest.fixture
def photo_event(make_image, put_object, upload_event):
    source = make_image(size=(2000, 1500))
    put_object(KEY, source)
    return upload_event(
        KEY,
        content_type="image/jpeg",
        size=source.stat().st_size,
        metadata={"uploadId": "abc", "originalFilename": "photo.jpg"},
    )


@pytest.fixture
def workdirs(monkeypatch, tmp_path: Path) -> list[Path]:
    created: list[Path] = []

    def _make(media_id: str) -> str:
        path = tmp_path / f"work-{media_id}-{len(created)}"
        path.mkdir()
        created.append(path)
        return path.as_posix()

    monkeypatch.setattr(image_pipeline, "make_workdir", _make)
    return created


def test_image_upload_produces_webp_variants(
    photo_event, config, documents, blobs, stage_log, workdirs
):
    result = ingest_image(
        event=photo_event, config=config, documents=documents, blobs=blobs
    )

    assert result.status == "completed"
    assert result.media_id == "abc"
    doc = documents.get("abc")
    assert doc["processed"] is True
    assert doc["type"] == "image"
    assert doc["uploadId"] == "abc"
    assert doc["originalFilename"] == "photo.jpg"
    assert doc["processing"]["stage"] == "done"
    assert doc["processing"]["progress"] == 100
    assert (doc["width"], doc["height"]) == (1920, 1440)
    assert doc["blurHash"] is None

    derivatives = doc["paths"]["derivatives"]
    assert set(derivatives) == {"webp_thumb", "webp_small", "webp_medium", "webp_large"}
    for name, entry in derivatives.items():
        assert entry["storagePath"] == f"temp-assets/abc/{name}.webp"
        assert "token=" in entry["downloadURL"]
        assert entry["sizeBytes"] > 0
        assert blobs.exists(entry["storagePath"])

    assert not blobs.exists(KEY)
    assert doc["paths"]["original"]["storagePath"] == KEY
    assert not any(path.exists() for path in workdirs)

    assert stage_log == [
        ImageStage.DOWNLOAD_START,
        ImageStage.DOWNLOADED,
        ImageStage.VARIANTS_READY,
        ImageStage.DERIVATIVES_READY,
        ImageStage.ORIGINAL_DELETED,
        ImageStage.DONE,
    ]


def test_blurhash_written_when_enabled(
    monkeypatch, photo_event, documents, blobs, workdirs
):
    from vitrine_core.config import Config

    monkeypatch.setenv("BLURHASH_ENABLED", "true")
    config = Config.from_env()

    ingest_image(event=photo_event, config=config, documents=documents, blobs=blobs)

    blur_hash = documents.get("abc")["blurHash"]
    assert isinstance(blur_hash, str) and blur_hash


def test_second_delivery_is_skipped(photo_event, config, documents, blobs, workdirs):
    first = ingest_image(
        event=photo_event, config=config, documents=documents, blobs=blobs
    )
    finished = documents.get("abc")

    second = ingest_image(
        event=photo_event, config=config, documents=documents, blobs=blobs
    )

    assert first.status == "completed"
    assert second.status == "skipped"
    assert documents.get("abc") == finished


def test_rerun_after_partial_attempt_completes(
    photo_event, config, documents, blobs, store, workdirs
):
    store.set(
        config.media_collection,
        "abc",
        {"id": "abc", "processed": False, "processing": {"stage": "downloaded"}},
    )

    result = ingest_image(
        event=photo_event, config=config, documents=documents, blobs=blobs
    )

    assert result.status == "completed"
    doc = documents.get("abc")
    assert doc["processed"] is True
    assert doc["mediaSetId"] is None


def test_corrupt_image_fails_and_cleans_up(
    put_object, upload_event, tmp_path, config, documents, blobs, workdirs
):
    broken = tmp_path / "broken.jpg"
    broken.write_bytes(b"definitely not a jpeg")
    put_object(KEY, broken)
    event = upload_event(
        KEY, content_type="image/jpeg", metadata={"uploadId": "bad"}
    )

    with pytest.raises(CodecError):
        ingest_image(event=event, config=config, documents=documents, blobs=blobs)

    doc = documents.get("bad")
    assert doc["processed"] is False
    assert doc["processing"]["stage"] == "downloaded"
    assert doc["paths"]["derivatives"] == {}
    assert blobs.exists(KEY)
    assert not any(path.exists() for path in workdirs)


def test_generated_id_when_upload_id_missing(
    make_image, put_object, upload_event, config, documents, blobs, workdirs
):
    put_object(KEY, make_image(size=(800, 600)))
    event = upload_event(KEY, content_type="image/jpeg")

    result = ingest_image(event=event, config=config, documents=documents, blobs=blobs)

    doc = documents.get(result.media_id)
    assert doc["uploadId"] == result.media_id
    assert doc["originalFilename"] == "photo.jpg"
    # Never upscaled: the two largest widths keep the source size.
    assert doc["paths"]["derivatives"]["webp_large"]["storagePath"].endswith(
        "webp_large.webp"
    )
    assert (doc["width"], doc["height"]) == (800, 600)
