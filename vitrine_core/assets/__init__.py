from vitrine_core.assets.access import (
    generate_download_url,
    is_media_referenced,
    preferred_derivative_path,
    regenerate_download_url,
    validate_delete,
)
from vitrine_core.assets.documents import MediaDocuments
from vitrine_core.assets.types import (
    AssetFile,
    Origin,
    UploadDescriptor,
    initial_media_document,
)

__all__ = [
    "AssetFile",
    "MediaDocuments",
    "Origin",
    "UploadDescriptor",
    "generate_download_url",
    "initial_media_document",
    "is_media_referenced",
    "preferred_derivative_path",
    "regenerate_download_url",
    "validate_delete",
]
