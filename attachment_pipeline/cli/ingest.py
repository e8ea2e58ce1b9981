"""
CLI ingest commands — push a local file through the pipeline.

Usage:
    python -m attachment_pipeline.main ingest receipt.jpg --file-type receipt
    python -m attachment_pipeline.main ingest permit.pdf --house-document-type building_permit
    python -m attachment_pipeline.main classify image/heic
"""

from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Optional

import click

from ..models.attachment import AssociationContext, DocumentMetadata, FileType
from ..storage.base import PersistenceError
from ..validation import (
    ConfigurationError,
    ValidationError,
    optional_id,
    parse_expiry,
    validate_file_type,
    validate_house_document_type,
)


@click.command("ingest")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--file-type",
    type=click.Choice([t.value for t in FileType]),
    default=FileType.DOCUMENT.value,
    show_default=True,
    help="What the file is",
)
@click.option("--mime", "mime_type", help="Declared MIME type (default: guessed from name)")
@click.option("--purchase-id", help="Attach to a purchase")
@click.option("--line-item-id", help="Attach to a line item")
@click.option("--room-id", help="Attach to a room")
@click.option("--house-document-type", help="Store as a house document of this category")
@click.option("--title", help="House document title (default: file name)")
@click.option("--description", help="House document description")
@click.option("--expires-at", help="House document expiry date")
@click.pass_context
def ingest(
    ctx: click.Context,
    path: Path,
    file_type: str,
    mime_type: Optional[str],
    purchase_id: Optional[str],
    line_item_id: Optional[str],
    room_id: Optional[str],
    house_document_type: Optional[str],
    title: Optional[str],
    description: Optional[str],
    expires_at: Optional[str],
) -> None:
    """Optimize and store a local file, then print its attachment record."""
    from ..config.loader import load_settings
    from ..ingest import UploadIngestor

    root = ctx.obj["root"]
    mime_type = mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"

    document = None
    try:
        if house_document_type:
            document = DocumentMetadata(
                category=validate_house_document_type(house_document_type),
                title=title,
                description=description,
                expires_at=parse_expiry(expires_at),
            )
        resolved_type = FileType.DOCUMENT if document else validate_file_type(file_type)
    except ValidationError as e:
        raise click.BadParameter(str(e))

    association = AssociationContext(
        purchase_id=optional_id(purchase_id),
        line_item_id=optional_id(line_item_id),
        room_id=optional_id(room_id),
    )

    try:
        ingestor = UploadIngestor.from_settings(load_settings(), root)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    try:
        attachment = ingestor.ingest(
            path.read_bytes(),
            mime_type,
            path.name,
            association=association,
            file_type=resolved_type,
            document=document,
        )
    except ValidationError as e:
        raise click.UsageError(str(e))
    except PersistenceError as e:
        raise click.ClickException(f"Storage failed: {e}")

    click.echo(json.dumps(attachment.to_response(), indent=2))


@click.command("classify")
@click.argument("mime_type")
def classify_cmd(mime_type: str) -> None:
    """Show which optimizer a MIME type is routed to."""
    from ..media.classifier import classify
    from ..media.image_optimize import output_format_for

    file_class = classify(mime_type)
    line = file_class.kind.value
    if file_class.is_image:
        line = f"{line} ({file_class.subtype} → {output_format_for(mime_type).lower()})"
    click.echo(line)
