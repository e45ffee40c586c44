from __future__ import annotations

from enum import Enum


class PipelineStage(Enum):
    """Named checkpoint with its nominal progress percentage."""

    def __init__(self, label: str, progress: int) -> None:
        self.label = label
        self.progress = progress


class ImageStage(PipelineStage):
    CREATED = ("created", 20)
    DOWNLOAD_START = ("download_start", 30)
    DOWNLOADED = ("downloaded", 35)
    VARIANTS_READY = ("variants_ready", 55)
    DERIVATIVES_READY = ("derivatives_ready", 75)
    ORIGINAL_DELETED = ("original_deleted", 85)
    DONE = ("done", 100)


class VideoStage(PipelineStage):
    CREATED = ("created", 15)
    DOWNLOAD_START = ("download_start", 20)
    DOWNLOADED = ("downloaded", 25)
    METADATA = ("metadata", 30)
    POSTER_GENERATED = ("poster_generated", 40)
    POSTER_UPLOADED = ("poster_uploaded", 50)
    TRANSCODE_360 = ("transcode_360", 60)
    TRANSCODE_720 = ("transcode_720", 70)
    TRANSCODE_1080 = ("transcode_1080", 80)
    DERIVATIVES_READY = ("derivatives_ready", 85)
    ORIGINAL_DELETED = ("original_deleted", 90)
    DONE = ("done", 100)


# Reported in completion order, not per resolution.
TRANSCODE_CHECKPOINTS = (
    VideoStage.TRANSCODE_360,
    VideoStage.TRANSCODE_720,
    VideoStage.TRANSCODE_1080,
)
