from __future__ import annotations

from pathlib import Path

import pytest
from google.api_core import exceptions as gcp_exceptions

from gcp_adapter.gcs_blobs import FIREBASE_TOKEN_KEY, GcsBlobStore
from vitrine_core.errors import PermanentError


class _Blob:
    def __init__(self, bucket: "_Bucket", name: str):
        self.bucket = bucket
        self.name = name
        self.metadata: dict | None = None
        self.patched = 0

    def download_to_filename(self, path: str) -> None:
        if self.name not in self.bucket.objects:
            Path(path).write_bytes(b"")
            raise gcp_exceptions.NotFound("no such object")
        Path(path).write_bytes(self.bucket.objects[self.name])

    def upload_from_filename(self, path: str, content_type=None) -> None:
        self.bucket.objects[self.name] = Path(path).read_bytes()
        self.bucket.content_types[self.name] = content_type

    def delete(self) -> None:
        if self.name not in self.bucket.objects:
            raise gcp_exceptions.NotFound("no such object")
        del self.bucket.objects[self.name]

    def exists(self) -> bool:
        return self.name in self.bucket.objects

    def patch(self) -> None:
        self.patched += 1
        self.bucket.metadata[self.name] = dict(self.metadata or {})


class _Bucket:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str | None] = {}
        self.metadata: dict[str, dict] = {}

    def blob(self, name: str) -> _Blob:
        return _Blob(self, name)

    def get_blob(self, name: str) -> _Blob | None:
        if name not in self.objects:
            return None
        blob = _Blob(self, name)
        blob.metadata = dict(self.metadata.get(name, {})) or None
        return blob


class _Client:
    def __init__(self):
        self.buckets: dict[str, _Bucket] = {}

    def bucket(self, name: str) -> _Bucket:
        return self.buckets.setdefault(name, _Bucket())


@pytest.fixture
def store() -> GcsBlobStore:
    return GcsBlobStore(client=_Client(), bucket_name="test-media")


def test_round_trip(store, tmp_path):
    source = tmp_path / "a.webp"
    source.write_bytes(b"webp-bytes")

    store.upload(source.as_posix(), "temp-assets/m1/webp_small.webp", "image/webp")
    target = tmp_path / "b.webp"
    size = store.download("temp-assets/m1/webp_small.webp", target.as_posix())

    assert size == len(b"webp-bytes")
    assert store.exists("temp-assets/m1/webp_small.webp")
    store.delete("temp-assets/m1/webp_small.webp")
    assert not store.exists("temp-assets/m1/webp_small.webp")


def test_missing_object_is_permanent(store, tmp_path):
    target = tmp_path / "missing.jpg"
    with pytest.raises(PermanentError):
        store.download("uploads/images/missing.jpg", target.as_posix())
    assert not target.exists()
    with pytest.raises(PermanentError):
        store.delete("uploads/images/missing.jpg")


def test_download_url_reuses_and_rotates_token(store, tmp_path):
    source = tmp_path / "a.webp"
    source.write_bytes(b"x")
    key = "temp-assets/m1/webp_medium.webp"
    store.upload(source.as_posix(), key, "image/webp")

    first = store.mint_durable_read_url(key)
    again = store.mint_durable_read_url(key)
    rotated = store.mint_durable_read_url(key, rotate=True)

    assert first.startswith(
        "https://firebasestorage.googleapis.com/v0/b/test-media/o/"
        "temp-assets%2Fm1%2Fwebp_medium.webp?alt=media&token="
    )
    assert again == first
    assert rotated != first
    bucket = store.client.bucket("test-media")
    assert rotated.endswith(bucket.metadata[key][FIREBASE_TOKEN_KEY])


def test_existing_token_list_uses_first_entry(store, tmp_path):
    source = tmp_path / "a.webp"
    source.write_bytes(b"x")
    key = "temp-assets/m1/poster.webp"
    store.upload(source.as_posix(), key, "image/webp")
    store.client.bucket("test-media").metadata[key] = {
        FIREBASE_TOKEN_KEY: "tok-a,tok-b"
    }

    assert store.mint_durable_read_url(key).endswith("token=tok-a")


def test_missing_object_has_no_url(store):
    with pytest.raises(PermanentError):
        store.mint_durable_read_url("temp-assets/none.webp")
