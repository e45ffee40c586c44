from __future__ import annotations

import json
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from vitrine_core.errors import CodecError, RecoverableError


@dataclass(frozen=True)
class VideoProbe:
    duration_seconds: float
    width: int | None
    height: int | None
    bitrate: int | None
    codec_name: str | None


def _ensure_tool(name: str) -> None:
    if shutil.which(name) is None:
        raise RecoverableError(f"Missing required binary: {name}")


_CORRUPT_MARKERS = (
    "invalid data found when processing input",
    "moov atom not found",
    "output file does not contain any stream",
    "could not find codec parameters",
    "invalid argument",
    "unknown format",
    "does not contain any stream",
    "no such file or directory",
)


def _raise_media_error(step: str, stderr: str) -> None:
    message = stderr.strip() or "Unknown media error"
    lowered = message.lower()
    if any(marker in lowered for marker in _CORRUPT_MARKERS):
        raise CodecError(f"{step} failed: {message}")
    raise RecoverableError(f"{step} failed: {message}")


def _run(step: str, cmd: list[str]) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(cmd, capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as exc:
        _raise_media_error(step, exc.stderr or exc.stdout or str(exc))
        raise


def _parse_float(value: object) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_int(value: object) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def probe_metadata(path: str) -> VideoProbe:
    """Container duration and bitrate plus the first video stream's dimensions."""
    _ensure_tool("ffprobe")
    cmd = [
        "ffprobe",
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        path,
    ]
    result = _run("ffprobe", cmd)
    try:
        payload = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise CodecError(f"ffprobe returned invalid JSON: {exc}") from exc

    format_info = payload.get("format", {}) or {}
    streams = payload.get("streams", []) or []
    video = next(
        (stream for stream in streams if stream.get("codec_type") == "video"),
        streams[0] if streams else {},
    )
    return VideoProbe(
        duration_seconds=_parse_float(format_info.get("duration")) or 0.0,
        width=_parse_int(video.get("width")),
        height=_parse_int(video.get("height")),
        bitrate=_parse_int(format_info.get("bit_rate")),
        codec_name=video.get("codec_name"),
    )


def extract_poster(
    input_path: str,
    output_path: str,
    *,
    offset_seconds: float = 1.0,
    width: int = 1280,
) -> str:
    _ensure_tool("ffmpeg")
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    cmd = [
        "ffmpeg",
        "-y",
        "-ss",
        f"{offset_seconds:g}",
        "-i",
        input_path,
        "-vframes",
        "1",
        "-vf",
        f"scale={width}:-2:flags=lanczos,format=yuv420p",
        "-c:v",
        "libwebp",
        "-quality",
        "80",
        output_path,
    ]
    _run("ffmpeg poster", cmd)
    if not Path(output_path).exists():
        raise CodecError("ffmpeg poster produced no output")
    return output_path


def transcode_to_webm(
    input_path: str,
    output_path: str,
    height: int,
    *,
    crf: int = 30,
) -> str:
    """VP9 webm at the given height, audio dropped, bt709 tagged."""
    _ensure_tool("ffmpeg")
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    cmd = [
        "ffmpeg",
        "-y",
        "-i",
        input_path,
        "-an",
        "-c:v",
        "libvpx-vp9",
        "-b:v",
        "0",
        "-crf",
        str(crf),
        "-vf",
        f"scale=-2:{height}:flags=lanczos,format=yuv420p",
        "-pix_fmt",
        "yuv420p",
        "-colorspace",
        "bt709",
        "-color_primaries",
        "bt709",
        "-color_trc",
        "bt709",
        output_path,
    ]
    _run(f"ffmpeg transcode {height}p", cmd)
    if not Path(output_path).exists():
        raise CodecError(f"ffmpeg transcode {height}p produced no output")
    return output_path
