# Map document model and builder

from .model import (
    SourceImage,
    MapDocument,
)

from .builder import (
    file_sha256,
    build_document,
)

__all__ = [
    "SourceImage",
    "MapDocument",
    "file_sha256",
    "build_document",
]
