from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PipelineResult:
    media_id: str
    status: str
    variants: tuple[str, ...] = ()
    duration_ms: int | None = None
