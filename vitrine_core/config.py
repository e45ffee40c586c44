import os
from dataclasses import dataclass
from functools import lru_cache

_DEFAULT_IMAGE_VARIANTS = (
    "webp_thumb:320,webp_small:640,webp_medium:1280,webp_large:1920"
)

# Transcode pool must stay smaller than the rendition batch.
VIDEO_RESOLUTIONS = (360, 720, 1080)


@dataclass(frozen=True)
class Config:
    env: str
    log_level: str
    storage_backend: str
    media_bucket: str
    local_bucket_root: str | None
    media_collection: str
    mediasets_collection: str
    service_requests_collection: str
    work_orders_collection: str
    deleted_service_requests_collection: str
    image_upload_prefix: str
    video_upload_prefix: str
    derivative_prefix: str
    image_variant_widths: tuple[tuple[str, int], ...]
    webp_quality: int
    blurhash_enabled: bool
    transcode_concurrency: int
    poster_offset_seconds: float
    poster_width: int
    video_crf: int
    max_raw_bytes: int

    def bucket_uri(self) -> str:
        if self.storage_backend == "local":
            if not self.local_bucket_root:
                raise ValueError("LOCAL_BUCKET_ROOT is required for local storage")
            return self.local_bucket_root
        return f"gs://{self.media_bucket.strip('/')}"

    @classmethod
    def from_env(cls) -> "Config":
        missing: list[str] = []

        def require(name: str) -> str:
            value = os.getenv(name)
            if value is None or value == "":
                missing.append(name)
                return ""
            return value

        storage_backend = os.getenv("STORAGE_BACKEND", "local").strip().lower()
        allowed_backends = {"local", "gcs"}
        if storage_backend not in allowed_backends:
            allowed = ", ".join(sorted(allowed_backends))
            raise ValueError(f"STORAGE_BACKEND must be one of: {allowed}")

        media_bucket = (
            require("MEDIA_BUCKET")
            if storage_backend == "gcs"
            else os.getenv("MEDIA_BUCKET", "")
        )
        local_bucket_root = os.getenv("LOCAL_BUCKET_ROOT")
        if storage_backend == "local" and not local_bucket_root:
            missing.append("LOCAL_BUCKET_ROOT")
        env = require("ENV")
        log_level = require("LOG_LEVEL")

        image_variant_widths = _parse_variant_widths(
            os.getenv("IMAGE_VARIANT_WIDTHS", _DEFAULT_IMAGE_VARIANTS)
        )
        transcode_concurrency = int(os.getenv("TRANSCODE_CONCURRENCY", "2"))
        if not 1 <= transcode_concurrency < len(VIDEO_RESOLUTIONS):
            raise ValueError(
                "TRANSCODE_CONCURRENCY must be between 1 and "
                f"{len(VIDEO_RESOLUTIONS) - 1}"
            )
        webp_quality = int(os.getenv("WEBP_QUALITY", "80"))
        if not 1 <= webp_quality <= 100:
            raise ValueError("WEBP_QUALITY must be between 1 and 100")

        if missing:
            missing_str = ", ".join(missing)
            raise ValueError(f"Missing required env vars: {missing_str}")

        return cls(
            env=env,
            log_level=log_level,
            storage_backend=storage_backend,
            media_bucket=media_bucket,
            local_bucket_root=local_bucket_root,
            media_collection=os.getenv("MEDIA_COLLECTION", "media"),
            mediasets_collection=os.getenv("MEDIASETS_COLLECTION", "mediasets"),
            service_requests_collection=os.getenv(
                "SERVICE_REQUESTS_COLLECTION", "service_requests"
            ),
            work_orders_collection=os.getenv("WORK_ORDERS_COLLECTION", "work_orders"),
            deleted_service_requests_collection=os.getenv(
                "DELETED_SERVICE_REQUESTS_COLLECTION", "deleted_service_requests"
            ),
            image_upload_prefix=_normalize_prefix(
                os.getenv("IMAGE_UPLOAD_PREFIX", "uploads/images/")
            ),
            video_upload_prefix=_normalize_prefix(
                os.getenv("VIDEO_UPLOAD_PREFIX", "uploads/videos/")
            ),
            derivative_prefix=os.getenv("DERIVATIVE_PREFIX", "temp-assets").strip("/"),
            image_variant_widths=image_variant_widths,
            webp_quality=webp_quality,
            blurhash_enabled=_parse_bool(os.getenv("BLURHASH_ENABLED"), False),
            transcode_concurrency=transcode_concurrency,
            poster_offset_seconds=_parse_float(
                os.getenv("POSTER_OFFSET_SECONDS", "1")
            ),
            poster_width=int(os.getenv("POSTER_WIDTH", "1280")),
            video_crf=int(os.getenv("VIDEO_CRF", "30")),
            max_raw_bytes=int(os.getenv("MAX_RAW_BYTES", str(2 * 1024**3))),
        )


def _normalize_prefix(value: str) -> str:
    cleaned = value.strip().strip("/")
    return f"{cleaned}/" if cleaned else ""


def _parse_variant_widths(value: str) -> tuple[tuple[str, int], ...]:
    items: list[tuple[str, int]] = []
    for raw in value.split(","):
        cleaned = raw.strip()
        if not cleaned:
            continue
        name, sep, width = cleaned.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Invalid image variant spec: {cleaned}")
        try:
            parsed = int(width)
        except ValueError as exc:
            raise ValueError(f"Invalid image variant width: {cleaned}") from exc
        if parsed <= 0:
            raise ValueError(f"Invalid image variant width: {cleaned}")
        items.append((name.strip(), parsed))
    if len({width for _, width in items}) < 2:
        raise ValueError("IMAGE_VARIANT_WIDTHS needs at least two distinct widths")
    return tuple(sorted(items, key=lambda item: item[1]))


def _parse_float(value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Invalid float value: {value}") from exc


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


@lru_cache(maxsize=1)
def get_config() -> Config:
    return Config.from_env()
