"""
Upload Server — Flask app exposing the ingestion pipeline.

Routes are registered from blueprints; the ingestor and settings are
stored on app.config so tests can inject their own.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from flask import Flask, g, jsonify, request

from ..config.loader import PipelineSettings, load_settings
from ..ingest import UploadIngestor
from .routes_upload import upload_bp

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[PipelineSettings] = None,
    ingestor: Optional[UploadIngestor] = None,
    project_root: Optional[Path] = None,
) -> Flask:
    """Create the Flask application."""
    settings = settings or load_settings()
    project_root = project_root or Path.cwd()

    app = Flask(__name__)

    app.config["PROJECT_ROOT"] = project_root
    app.config["SETTINGS"] = settings
    app.config["INGESTOR"] = ingestor or UploadIngestor.from_settings(settings, project_root)

    # Multipart overhead on top of the file itself
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_bytes + 64 * 1024

    # ── Register Blueprints ───────────────────────────────────────
    app.register_blueprint(upload_bp, url_prefix="/api")               # /api/upload, /api/documents

    # ── Error Handlers ────────────────────────────────────────────

    @app.errorhandler(413)
    def request_entity_too_large(e):
        """Return JSON for 413 so API clients get a parseable response."""
        max_mb = settings.max_upload_bytes / (1024 * 1024)
        return jsonify({"error": f"File too large (max {max_mb:.0f} MB)"}), 413

    @app.errorhandler(500)
    def internal_server_error(e):
        """Catch-all: return JSON for any unhandled 500 so clients never see raw HTML."""
        logger.error(f"Unhandled 500 on {request.method} {request.path}: {e}")
        return jsonify({"error": "Internal server error"}), 500

    # ── Request Logging ───────────────────────────────────────────

    @app.before_request
    def log_request_start():
        g.start_time = time.time()

    @app.after_request
    def log_request_end(response):
        """Log API requests with duration."""
        duration_ms = 0
        if "start_time" in g:
            duration_ms = int((time.time() - g.start_time) * 1000)
        if request.path.startswith("/api/"):
            logger.info(
                f"{request.method} {request.path} → {response.status_code} ({duration_ms}ms)"
            )
        return response

    logger.info(
        f"Upload server initialized (project_root={project_root}, "
        f"conversion={'on' if settings.has_conversion() else 'off'})"
    )
    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 5050,
    debug: bool = False,
    project_root: Optional[Path] = None,
) -> None:
    """Run the development server."""
    app = create_app(project_root=project_root)
    logger.info(f"Serving uploads on http://{host}:{port}")
    app.run(host=host, port=port, debug=debug, threaded=True)
