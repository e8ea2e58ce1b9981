from .attachment import (
    AssociationContext,
    Attachment,
    DocumentMetadata,
    FileType,
    HouseDocumentType,
)

__all__ = [
    "AssociationContext",
    "Attachment",
    "DocumentMetadata",
    "FileType",
    "HouseDocumentType",
]
