from vitrine_core.ingestion.pipelines.image import ingest_image
from vitrine_core.ingestion.pipelines.types import PipelineResult
from vitrine_core.ingestion.pipelines.video import ingest_video

__all__ = [
    "PipelineResult",
    "ingest_image",
    "ingest_video",
]
