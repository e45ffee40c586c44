from vitrine_core.ingestion.router import (
    PipelineOutcome,
    modality_for_event,
    process_upload_event,
)
from vitrine_core.ingestion.runner import run_bounded
from vitrine_core.ingestion.stages import ImageStage, VideoStage
from vitrine_core.ingestion.storage_event import UploadEvent

__all__ = [
    "ImageStage",
    "PipelineOutcome",
    "UploadEvent",
    "VideoStage",
    "modality_for_event",
    "process_upload_event",
    "run_bounded",
]
