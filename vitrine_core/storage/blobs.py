from __future__ import annotations

from typing import Protocol


class BlobStore(Protocol):
    def download(self, key: str, local_path: str) -> int:
        ...

    def upload(self, local_path: str, key: str, content_type: str | None) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def exists(self, key: str) -> bool:
        ...

    def mint_durable_read_url(self, key: str, *, rotate: bool = False) -> str:
        ...
