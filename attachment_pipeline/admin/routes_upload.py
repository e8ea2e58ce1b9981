"""
Upload API — attachment and house-document ingestion endpoints.

Blueprint: upload_bp
Prefix: /api
Routes:
    POST /api/upload       # Attach a file to a purchase, line item or room
    POST /api/documents    # Upload a house document (contract, permit, ...)

Both accept multipart/form-data with a `file` part and answer with the
Attachment record. Optimization failures still answer 200: the original
bytes are stored instead. Status codes:

    200  stored (optimized or degraded)
    400  missing file or invalid enum/date
    401  missing or wrong bearer token (when UPLOAD_API_TOKEN is set)
    500  storage or repository failure
"""

from __future__ import annotations

import hmac
import logging
import mimetypes
from typing import Optional, Tuple

from flask import Blueprint, current_app, jsonify, request

from ..models.attachment import AssociationContext, DocumentMetadata, FileType
from ..storage.base import PersistenceError
from ..validation import (
    ValidationError,
    optional_id,
    parse_expiry,
    validate_file_type,
    validate_house_document_type,
)

upload_bp = Blueprint("upload", __name__)

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────


def _is_authorized() -> bool:
    """Bearer token check; open when no token is configured."""
    token = current_app.config["SETTINGS"].upload_api_token
    if not token:
        return True
    header = request.headers.get("Authorization", "")
    scheme, _, supplied = header.partition(" ")
    if scheme.lower() != "bearer" or not supplied:
        return False
    return hmac.compare_digest(supplied.strip().encode(), token.encode())


def _read_file() -> Tuple[bytes, str, str]:
    """Return (data, file_name, mime_type) of the `file` part."""
    if "file" not in request.files:
        raise ValidationError("No file provided", field="file")

    file = request.files["file"]
    if not file.filename:
        raise ValidationError("Empty filename", field="file")

    data = file.read()
    if not data:
        raise ValidationError("Empty file", field="file")

    mime_type = (
        file.mimetype
        or mimetypes.guess_type(file.filename)[0]
        or "application/octet-stream"
    )
    return data, file.filename, mime_type


def _form(name: str) -> Optional[str]:
    value = request.form.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _ingest(data, mime_type, file_name, **kwargs):
    ingestor = current_app.config["INGESTOR"]
    try:
        attachment = ingestor.ingest(data, mime_type, file_name, **kwargs)
    except PersistenceError as e:
        logger.error(f"Upload of {file_name} failed to persist: {e}")
        return jsonify({"error": "Failed to upload file"}), 500
    return jsonify(attachment.to_response()), 200


# ── Routes ───────────────────────────────────────────────────────


@upload_bp.route("/upload", methods=["POST"])
def api_upload():
    """
    Attach a file.

    Accepts multipart/form-data:
        file: The file to upload (required)
        fileType: invoice | receipt | photo | document
        purchaseId, lineItemId, roomId: optional association ids

    A missing fileType is accepted and recorded as "document", the value
    existing upload clients rely on; an unknown value is a 400.
    """
    if not _is_authorized():
        return jsonify({"error": "Unauthorized"}), 401

    try:
        data, file_name, mime_type = _read_file()
        file_type = validate_file_type(_form("fileType"), default=FileType.DOCUMENT)
        association = AssociationContext(
            purchase_id=optional_id(request.form.get("purchaseId")),
            line_item_id=optional_id(request.form.get("lineItemId")),
            room_id=optional_id(request.form.get("roomId")),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return _ingest(
        data, mime_type, file_name,
        association=association,
        file_type=file_type,
    )


@upload_bp.route("/documents", methods=["POST"])
def api_upload_document():
    """
    Upload a house document.

    Accepts multipart/form-data:
        file: The file to upload (required)
        houseDocumentType: purchase_agreement | utility_contract | insurance |
            building_permit | tax_document | warranty | manual | other (required)
        documentTitle: optional, defaults to the file name
        documentDescription: optional
        expiresAt: optional date
    """
    if not _is_authorized():
        return jsonify({"error": "Unauthorized"}), 401

    try:
        data, file_name, mime_type = _read_file()
        document = DocumentMetadata(
            category=validate_house_document_type(_form("houseDocumentType")),
            title=_form("documentTitle"),
            description=_form("documentDescription"),
            expires_at=parse_expiry(_form("expiresAt")),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return _ingest(
        data, mime_type, file_name,
        file_type=FileType.DOCUMENT,
        document=document,
    )
