from vitrine_core.storage.blobs import BlobStore
from vitrine_core.storage.object_store import FsspecBlobStore

__all__ = ["BlobStore", "FsspecBlobStore"]
