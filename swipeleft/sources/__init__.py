from swipeleft.sources.base import (
    AssetHandle,
    IdentifierSource,
    ImageLoader,
    SortKey,
    TokenProvider,
    UploadPipeline,
)
from swipeleft.sources.directory import DirectorySource

__all__ = [
    "AssetHandle",
    "DirectorySource",
    "IdentifierSource",
    "ImageLoader",
    "SortKey",
    "TokenProvider",
    "UploadPipeline",
]
