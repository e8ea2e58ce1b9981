"""
Attachment Model — the record produced by one ingestion.

The repository collaborator owns persistence; this module only defines
the contract. URLs always point at the stored (optimized or degraded)
artifacts, never at the upload itself.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FileType(str, Enum):
    """What the user says the file is, independent of its MIME type."""
    INVOICE = "invoice"
    RECEIPT = "receipt"
    PHOTO = "photo"
    DOCUMENT = "document"


class HouseDocumentType(str, Enum):
    """Category of a house document (contracts, permits, manuals, ...)."""
    PURCHASE_AGREEMENT = "purchase_agreement"
    UTILITY_CONTRACT = "utility_contract"
    INSURANCE = "insurance"
    BUILDING_PERMIT = "building_permit"
    TAX_DOCUMENT = "tax_document"
    WARRANTY = "warranty"
    MANUAL = "manual"
    OTHER = "other"


class AssociationContext(BaseModel):
    """
    Which entity the attachment hangs off.

    Forwarded as given: any combination may be set, and referential
    integrity is the repository's concern.
    """

    purchase_id: Optional[str] = None
    line_item_id: Optional[str] = None
    room_id: Optional[str] = None


class DocumentMetadata(BaseModel):
    """Extra fields for the house-document upload path."""

    category: HouseDocumentType
    title: Optional[str] = None
    description: Optional[str] = None
    expires_at: Optional[date] = None


class Attachment(BaseModel):
    """A stored upload plus its metadata."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    purchase_id: Optional[str] = None
    line_item_id: Optional[str] = None
    room_id: Optional[str] = None
    file_url: str
    thumbnail_url: Optional[str] = None
    file_name: str
    file_type: FileType
    file_size_bytes: int
    # House document fields
    house_document_type: Optional[HouseDocumentType] = None
    document_title: Optional[str] = None
    document_description: Optional[str] = None
    expires_at: Optional[date] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        frozen=True,
    )

    @property
    def association(self) -> AssociationContext:
        return AssociationContext(
            purchase_id=self.purchase_id,
            line_item_id=self.line_item_id,
            room_id=self.room_id,
        )

    @property
    def is_house_document(self) -> bool:
        return self.house_document_type is not None

    def to_response(self) -> Dict[str, Any]:
        """JSON body for API clients (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True)
