from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from urllib.parse import quote

from google.api_core import exceptions as gcp_exceptions
from google.cloud import storage

from vitrine_core.errors import PermanentError, RecoverableError

FIREBASE_TOKEN_KEY = "firebaseStorageDownloadTokens"
FIREBASE_DOWNLOAD_BASE = "https://firebasestorage.googleapis.com/v0/b"


def firebase_download_url(bucket: str, key: str, token: str) -> str:
    encoded = quote(key, safe="")
    return f"{FIREBASE_DOWNLOAD_BASE}/{bucket}/o/{encoded}?alt=media&token={token}"


@dataclass(frozen=True)
class GcsBlobStore:
    """Blob store over one GCS bucket with Firebase token download URLs."""

    client: storage.Client
    bucket_name: str

    def _blob(self, key: str) -> storage.Blob:
        return self.client.bucket(self.bucket_name).blob(key)

    def download(self, key: str, local_path: str) -> int:
        blob = self._blob(key)
        try:
            blob.download_to_filename(local_path)
        except gcp_exceptions.NotFound as exc:
            _remove_partial(local_path)
            raise PermanentError(f"Object not found: {key}") from exc
        except Exception as exc:
            _remove_partial(local_path)
            raise RecoverableError(f"Failed downloading {key}: {exc}") from exc
        return os.path.getsize(local_path)

    def upload(self, local_path: str, key: str, content_type: str | None) -> None:
        blob = self._blob(key)
        try:
            blob.upload_from_filename(local_path, content_type=content_type)
        except Exception as exc:
            raise RecoverableError(f"Failed uploading {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._blob(key).delete()
        except gcp_exceptions.NotFound as exc:
            raise PermanentError(f"Object not found: {key}") from exc
        except Exception as exc:
            raise RecoverableError(f"Failed deleting {key}: {exc}") from exc

    def exists(self, key: str) -> bool:
        return bool(self._blob(key).exists())

    def mint_durable_read_url(self, key: str, *, rotate: bool = False) -> str:
        """Reuse the object's download token, or store a new one."""
        blob = self.client.bucket(self.bucket_name).get_blob(key)
        if blob is None:
            raise PermanentError(f"Object not found: {key}")
        metadata = dict(blob.metadata or {})
        token = metadata.get(FIREBASE_TOKEN_KEY)
        if token and not rotate:
            # Firebase keeps a comma separated list, the first entry is current.
            token = str(token).split(",", 1)[0]
        else:
            token = str(uuid.uuid4())
            metadata[FIREBASE_TOKEN_KEY] = token
            blob.metadata = metadata
            try:
                blob.patch()
            except Exception as exc:
                raise RecoverableError(
                    f"Failed storing download token for {key}: {exc}"
                ) from exc
        return firebase_download_url(self.bucket_name, key, token)


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        return
