"""
Shared fixtures for pipeline tests.

Provides in-memory collaborators, a fake conversion service behind
httpx.MockTransport, and a Flask test app wired to both.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from attachment_pipeline.config.loader import PipelineSettings
from attachment_pipeline.ingest import UploadIngestor
from attachment_pipeline.media.cloudconvert import CloudConvertClient
from attachment_pipeline.media.pdf_optimize import PdfOptimizer
from attachment_pipeline.storage.memory import InMemoryAttachmentRepository, InMemoryBlobStore

API_URL = "https://api.cloudconvert.test/v2"
PDF_URL = "https://storage.cloudconvert.test/tasks/export-pdf/invoice.pdf"
THUMB_URL = "https://storage.cloudconvert.test/tasks/export-thumbnail/invoice.jpg"


# ── Fake conversion service ──────────────────────────────────────────


def finished_tasks(
    pdf_url: Optional[str] = PDF_URL,
    thumb_url: Optional[str] = THUMB_URL,
    pdf_name: str = "invoice.pdf",
    thumb_name: str = "invoice.jpg",
) -> List[Dict[str, Any]]:
    """Task list of a job that finished successfully."""
    tasks: List[Dict[str, Any]] = [
        {"name": "import-pdf", "operation": "import/base64", "status": "finished"},
        {"name": "optimize-pdf", "operation": "optimize", "status": "finished"},
        {"name": "thumbnail-pdf", "operation": "thumbnail", "status": "finished"},
    ]
    if pdf_url:
        tasks.append({
            "name": "export-pdf",
            "operation": "export/url",
            "status": "finished",
            "result": {"files": [{"filename": pdf_name, "url": pdf_url}]},
        })
    if thumb_url:
        tasks.append({
            "name": "export-thumbnail",
            "operation": "export/url",
            "status": "finished",
            "result": {"files": [{"filename": thumb_name, "url": thumb_url}]},
        })
    return tasks


def error_tasks(message: str = "PDF is password protected") -> List[Dict[str, Any]]:
    return [
        {"name": "import-pdf", "operation": "import/base64", "status": "finished"},
        {
            "name": "optimize-pdf",
            "operation": "optimize",
            "status": "error",
            "code": "INVALID_PDF",
            "message": message,
        },
    ]


class FakeCloudConvert:
    """
    Scripted conversion service.

    `statuses` is consumed one entry per GET /jobs/{id}; the last entry
    repeats. Tasks are only reported once the job is terminal.
    Time only moves when the client sleeps or a request spends simulated
    latency (`poll_seconds`, `download_seconds`).
    """

    def __init__(self) -> None:
        self.statuses: List[str] = ["processing", "finished"]
        self.tasks: List[Dict[str, Any]] = finished_tasks()
        self.files: Dict[str, bytes] = {
            PDF_URL: b"%PDF-1.4 optimized",
            THUMB_URL: b"\xff\xd8\xff thumbnail",
        }
        self.failing_urls: set = set()
        self.create_status = 201
        self.submitted: List[Dict[str, Any]] = []
        self.polls = 0
        self.sleeps: List[float] = []
        self.now = 0.0
        # Simulated service latency per GET /jobs/{id} and per download
        self.poll_seconds = 0.0
        self.download_seconds = 0.0

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        path = request.url.path

        if request.method == "POST" and path.endswith("/jobs"):
            if self.create_status >= 400:
                return httpx.Response(self.create_status, json={"message": "rejected"})
            self.submitted.append(json.loads(request.content))
            return httpx.Response(
                self.create_status,
                json={"data": {"id": "job-1", "status": "waiting", "tasks": []}},
            )

        if request.method == "GET" and "/jobs/" in path:
            self._spend(request, self.poll_seconds)
            self.polls += 1
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            tasks = self.tasks if status in ("finished", "error") else []
            return httpx.Response(
                200, json={"data": {"id": "job-1", "status": status, "tasks": tasks}}
            )

        self._spend(request, self.download_seconds)
        if url in self.failing_urls:
            return httpx.Response(500)
        if url in self.files:
            return httpx.Response(200, content=self.files[url])
        return httpx.Response(404)

    def _spend(self, request: httpx.Request, seconds: float) -> None:
        """Advance the clock; a request slower than its read timeout times out."""
        if not seconds:
            return
        read_timeout = (request.extensions.get("timeout") or {}).get("read")
        if read_timeout is not None and read_timeout < seconds:
            self.now += read_timeout
            raise httpx.ReadTimeout("timed out", request=request)
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def clock(self) -> float:
        return self.now

    def client(self) -> CloudConvertClient:
        return CloudConvertClient(
            "test-key",
            api_url=API_URL,
            http_client=httpx.Client(transport=httpx.MockTransport(self.handler)),
            sleep=self.sleep,
            clock=self.clock,
        )


@pytest.fixture
def cloudconvert() -> FakeCloudConvert:
    return FakeCloudConvert()


@pytest.fixture
def pdf_optimizer(cloudconvert: FakeCloudConvert) -> PdfOptimizer:
    return PdfOptimizer(cloudconvert.client())


@pytest.fixture
def large_pdf() -> bytes:
    """A 2 MB 'PDF' — well above the skip threshold."""
    return b"%PDF-1.4\n" + b"0" * (2 * 1024 * 1024)


# ── Storage and ingestor ─────────────────────────────────────────────


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def repository() -> InMemoryAttachmentRepository:
    return InMemoryAttachmentRepository()


@pytest.fixture
def ingestor(blob_store, repository) -> UploadIngestor:
    """Ingestor without a conversion service."""
    return UploadIngestor(blob_store, repository)


# ── Flask ────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings()


@pytest.fixture
def app(tmp_path, settings, ingestor):
    """Flask test app wired to the in-memory ingestor."""
    from attachment_pipeline.admin.server import create_app

    app = create_app(settings=settings, ingestor=ingestor, project_root=tmp_path)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()
