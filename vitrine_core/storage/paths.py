from __future__ import annotations


def _strip_slashes(value: str) -> str:
    return value.strip("/")


def join_key(*parts: str) -> str:
    return "/".join(_strip_slashes(part) for part in parts if part)


def key_basename(key: str) -> str:
    return key.rstrip("/").rsplit("/", 1)[-1]


def image_variant_key(prefix: str, media_id: str, variant: str) -> str:
    return join_key(prefix, media_id, f"{variant}.webp")


def video_rendition_key(prefix: str, media_id: str, height: int) -> str:
    return join_key(prefix, media_id, f"video_{height}.webm")


def poster_key(prefix: str, media_id: str) -> str:
    return join_key(prefix, media_id, "poster.webp")


def video_variant_name(height: int) -> str:
    return f"webm_{height}"
