from __future__ import annotations

import os
import shutil
import uuid
from pathlib import Path
from urllib.parse import urlparse

import fsspec

from vitrine_core.errors import PermanentError, RecoverableError
from vitrine_core.storage.paths import join_key

_CHUNK_BYTES = 8 * 1024 * 1024


class FsspecBlobStore:
    """Blob store over any fsspec filesystem, a local directory by default."""

    def __init__(self, base_uri: str) -> None:
        parsed = urlparse(base_uri)
        if parsed.scheme and parsed.scheme != "file" and parsed.netloc:
            fs, path = fsspec.core.url_to_fs(base_uri)
            self.is_remote = True
        else:
            fs = fsspec.filesystem("file")
            path = parsed.path if parsed.scheme == "file" else base_uri
            self.is_remote = False
        self.base_uri = base_uri
        self.fs: fsspec.AbstractFileSystem = fs
        self.base_path = path
        self._tokens: dict[str, str] = {}

    def path_for(self, key: str) -> str:
        if self.is_remote:
            return join_key(self.base_path, key)
        return str(Path(self.base_path).joinpath(*key.strip("/").split("/")))

    def download(self, key: str, local_path: str) -> int:
        path = self.path_for(key)
        size = 0
        try:
            with self.fs.open(path, "rb") as reader, open(local_path, "wb") as writer:
                while True:
                    chunk = reader.read(_CHUNK_BYTES)
                    if not chunk:
                        break
                    size += len(chunk)
                    writer.write(chunk)
        except FileNotFoundError as exc:
            _remove_partial(local_path)
            raise PermanentError(f"Object not found: {key}") from exc
        except Exception as exc:
            _remove_partial(local_path)
            raise RecoverableError(f"Failed downloading {key}: {exc}") from exc
        return size

    def upload(self, local_path: str, key: str, content_type: str | None) -> None:
        path = self.path_for(key)
        try:
            self.fs.makedirs(os.path.dirname(path), exist_ok=True)
            with open(local_path, "rb") as src, self.fs.open(path, "wb") as dest:
                shutil.copyfileobj(src, dest)
        except Exception as exc:
            raise RecoverableError(f"Failed uploading {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            self.fs.rm(path)
        except FileNotFoundError as exc:
            raise PermanentError(f"Object not found: {key}") from exc
        except Exception as exc:
            raise RecoverableError(f"Failed deleting {key}: {exc}") from exc
        self._tokens.pop(key, None)

    def exists(self, key: str) -> bool:
        return bool(self.fs.exists(self.path_for(key)))

    def mint_durable_read_url(self, key: str, *, rotate: bool = False) -> str:
        if not self.exists(key):
            raise PermanentError(f"Object not found: {key}")
        token = self._tokens.get(key)
        if token is None or rotate:
            token = str(uuid.uuid4())
            self._tokens[key] = token
        path = self.path_for(key)
        if self.is_remote:
            base = self.fs.unstrip_protocol(path)
        else:
            base = Path(path).resolve().as_uri()
        return f"{base}?token={token}"


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        return
