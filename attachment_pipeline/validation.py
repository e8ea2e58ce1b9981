"""
Validation — reject bad uploads before any optimization work starts.

Validation failures are the caller's fault: they map to HTTP 400 and
are never logged as pipeline failures.

## Usage

    from attachment_pipeline.validation import validate_file_type

    try:
        file_type = validate_file_type(form.get("fileType"))
    except ValidationError as e:
        return {"error": str(e)}, 400
"""

from __future__ import annotations

from datetime import date
from typing import Dict, Optional

from dateutil import parser as date_parser

from .models.attachment import FileType, HouseDocumentType


class ValidationError(Exception):
    """Raised when validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        self.message = message
        self.field = field
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class ConfigurationError(Exception):
    """Raised when configuration is missing or invalid."""
    pass


def validate_upload(data: Optional[bytes], file_name: Optional[str]) -> None:
    """A file must be present, named and non-empty."""
    if data is None:
        raise ValidationError("No file provided", field="file")
    if not file_name or not file_name.strip():
        raise ValidationError("Empty filename", field="file")
    if len(data) == 0:
        raise ValidationError("Empty file", field="file")


def validate_file_type(value: Optional[str], default: Optional[FileType] = None) -> FileType:
    """Parse the caller's intended file type."""
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError("is required", field="fileType")
    try:
        return FileType(value)
    except ValueError:
        valid = ", ".join(t.value for t in FileType)
        raise ValidationError(f"invalid value '{value}' (valid: {valid})", field="fileType")


def validate_house_document_type(value: Optional[str]) -> HouseDocumentType:
    """House-document uploads must name a known category."""
    if not value:
        raise ValidationError("is required", field="houseDocumentType")
    try:
        return HouseDocumentType(value)
    except ValueError:
        valid = ", ".join(t.value for t in HouseDocumentType)
        raise ValidationError(f"invalid value '{value}' (valid: {valid})", field="houseDocumentType")


def parse_expiry(value: Optional[str]) -> Optional[date]:
    """Parse an expiry date; blank means none."""
    if value is None or not value.strip():
        return None
    try:
        return date_parser.parse(value).date()
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"invalid date '{value}': {e}", field="expiresAt")


def optional_id(value: Optional[str]) -> Optional[str]:
    """Association ids: blank strings are treated as absent."""
    if value is None:
        return None
    value = value.strip()
    return value or None
