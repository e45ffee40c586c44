from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Sequence

import blurhash
from PIL import Image, ImageOps, UnidentifiedImageError

from vitrine_core.errors import CodecError

_BLURHASH_SAMPLE = 32


@dataclass(frozen=True)
class ImageVariant:
    name: str
    path: str
    width: int
    height: int


def _load_oriented(path: str) -> Image.Image:
    try:
        with Image.open(path) as img:
            img.load()
            oriented = ImageOps.exif_transpose(img)
            if oriented is None:
                oriented = img.copy()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise CodecError(f"Unreadable image: {exc}") from exc
    if oriented.mode not in ("RGB", "RGBA"):
        has_alpha = "A" in oriented.getbands() or "transparency" in oriented.info
        oriented = oriented.convert("RGBA" if has_alpha else "RGB")
    return oriented


def create_webp_variants(
    path: str,
    widths: Sequence[tuple[str, int]],
    out_dir: str,
    *,
    quality: int = 80,
) -> list[ImageVariant]:
    """Resize to each target width, keeping aspect ratio and never upscaling."""
    source = _load_oriented(path)
    variants: list[ImageVariant] = []
    for name, width in widths:
        resized = source
        if source.width > width:
            height = max(1, round(source.height * (width / float(source.width))))
            resized = source.resize((width, height), Image.Resampling.LANCZOS)
        out_path = os.path.join(out_dir, f"{name}.webp")
        try:
            resized.save(out_path, format="WEBP", quality=quality)
        except OSError as exc:
            raise CodecError(f"webp encode failed for {name}: {exc}") from exc
        variants.append(
            ImageVariant(
                name=name,
                path=out_path,
                width=resized.width,
                height=resized.height,
            )
        )
    return variants


def compute_blurhash(
    path: str,
    *,
    components_x: int = 4,
    components_y: int = 3,
) -> str:
    sample = _load_oriented(path).convert("RGB")
    sample.thumbnail((_BLURHASH_SAMPLE, _BLURHASH_SAMPLE))
    width, height = sample.size
    pixels = list(sample.getdata())
    rows = [
        [list(pixels[y * width + x]) for x in range(width)] for y in range(height)
    ]
    return blurhash.encode(rows, components_x=components_x, components_y=components_y)
