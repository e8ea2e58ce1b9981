"""
Upload Server — HTTP front end for the ingestion pipeline.

Usage:
    python -m attachment_pipeline.admin
    # Serves http://127.0.0.1:5050/api/upload

Endpoints:
    - POST /api/upload     attach invoices, receipts, photos, documents
    - POST /api/documents  upload house documents with category and expiry
"""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
