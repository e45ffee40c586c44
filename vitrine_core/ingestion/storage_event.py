from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class UploadEvent:
    bucket: str
    name: str
    generation: str
    content_type: str | None
    size: int | None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def normalized_content_type(self) -> str:
        if not self.content_type:
            return ""
        return self.content_type.split(";", 1)[0].strip().lower()
