import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest
from PIL import Image

from vitrine_core.assets.documents import MediaDocuments
from vitrine_core.config import get_config
from vitrine_core.ingestion.storage_event import UploadEvent
from vitrine_core.storage.object_store import FsspecBlobStore
from vitrine_core.stores.memory_store import InMemoryDocumentStore


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    def set_default(name: str, value: str) -> None:
        if not os.getenv(name):
            monkeypatch.setenv(name, value)

    bucket_root = tmp_path / "bucket"
    bucket_root.mkdir()
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("LOCAL_BUCKET_ROOT", bucket_root.as_posix())
    set_default("ENV", "test")
    set_default("LOG_LEVEL", "INFO")
    set_default("MEDIA_BUCKET", "test-media")
    set_default("AUTH_JWT_HS256_SECRET", "test-secret")
    set_default("AUTH_JWT_ALGORITHMS", "HS256")
    set_default("AUTH_ISSUER", "https://issuer.test")
    set_default("AUTH_AUDIENCE", "vitrine-test")
    set_default("AUTH_REQUIRED_CLAIMS", "sub,iss,aud,exp,iat")
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def config():
    return get_config()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def blobs(config) -> FsspecBlobStore:
    return FsspecBlobStore(config.bucket_uri())


@pytest.fixture
def documents(store, config) -> MediaDocuments:
    return MediaDocuments(store, config.media_collection)


@pytest.fixture
def put_object(blobs):
    """Place a local file into the test bucket under ``key``."""

    def _put(key: str, source: Path) -> str:
        target = Path(blobs.path_for(key))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(source.read_bytes())
        return key

    return _put


@pytest.fixture
def make_image(tmp_path: Path):
    def _make(
        name: str = "photo.jpg",
        size: tuple[int, int] = (2000, 1500),
        *,
        exif_orientation: int | None = None,
    ) -> Path:
        path = tmp_path / name
        image = Image.new("RGB", size, color=(180, 90, 40))
        for x in range(0, size[0], 50):
            for y in range(0, size[1], 50):
                image.putpixel((x, y), (10, 200, 30))
        fmt = "PNG" if name.endswith(".png") else "JPEG"
        if exif_orientation is not None:
            exif = Image.Exif()
            exif[0x0112] = exif_orientation
            image.save(path, format=fmt, exif=exif)
        else:
            image.save(path, format=fmt)
        return path

    return _make


def _make_jwt(
    *,
    secret: str,
    issuer: str,
    audience: str,
    subject: str = "user-1",
    email: str | None = "user@example.com",
) -> str:
    now = datetime.now(timezone.utc)
    claims: dict[str, object] = {
        "sub": subject,
        "iss": issuer,
        "aud": audience,
        "exp": int((now + timedelta(minutes=5)).timestamp()),
        "iat": int(now.timestamp()),
    }
    if email is not None:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def jwt_factory():
    def _factory(**kwargs) -> str:
        secret = os.getenv("AUTH_JWT_HS256_SECRET", "test-secret")
        issuer = os.getenv("AUTH_ISSUER", "https://issuer.test")
        audience = os.getenv("AUTH_AUDIENCE", "vitrine-test")
        return _make_jwt(secret=secret, issuer=issuer, audience=audience, **kwargs)

    return _factory


@pytest.fixture
def jwt_headers(jwt_factory):
    token = jwt_factory()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def stage_log(documents, monkeypatch: pytest.MonkeyPatch) -> list:
    """Stages recorded through ``documents``, in call order."""
    seen: list = []
    record = documents.record_stage

    def _record(media_id, stage):
        seen.append(stage)
        record(media_id, stage)

    monkeypatch.setattr(documents, "record_stage", _record)
    return seen


@pytest.fixture
def upload_event():
    def _event(
        name: str,
        *,
        content_type: str,
        size: int = 1024,
        metadata: dict[str, str] | None = None,
        bucket: str = "test-media",
    ) -> UploadEvent:
        return UploadEvent(
            bucket=bucket,
            name=name,
            generation="1",
            content_type=content_type,
            size=size,
            metadata=metadata or {},
        )

    return _event
