"""
Tests for the conversion job client.

Uses httpx.MockTransport and a fake clock, so polling runs instantly.
"""

import threading

import httpx
import pytest

from attachment_pipeline.media.cloudconvert import CloudConvertClient, ConversionJob, JobState
from attachment_pipeline.media.errors import (
    ConversionCancelled,
    ConversionJobError,
    ConversionTimeout,
)
from tests.conftest import API_URL, PDF_URL, error_tasks, finished_tasks


TASKS = {"import-it": {"operation": "import/base64", "file": "", "filename": "a.pdf"}}


# ── Job submission ───────────────────────────────────────────────────


class TestCreateJob:

    def test_posts_tasks(self, cloudconvert):
        job = cloudconvert.client().create_job(TASKS, tag="attachment-1")

        assert job.id == "job-1"
        assert job.state is JobState.SUBMITTED
        assert cloudconvert.submitted == [{"tasks": TASKS, "tag": "attachment-1"}]

    def test_sends_bearer_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["url"] = str(request.url)
            return httpx.Response(201, json={"data": {"id": "j", "status": "waiting"}})

        client = CloudConvertClient(
            "secret-key",
            api_url=API_URL + "/",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        client.create_job(TASKS)
        assert seen["auth"] == "Bearer secret-key"
        assert seen["url"] == f"{API_URL}/jobs"

    def test_http_error_wrapped(self, cloudconvert):
        cloudconvert.create_status = 422
        with pytest.raises(ConversionJobError, match="HTTP 422"):
            cloudconvert.client().create_job(TASKS)

    def test_network_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        client = CloudConvertClient(
            "k", http_client=httpx.Client(transport=httpx.MockTransport(handler))
        )
        with pytest.raises(ConversionJobError, match="connection refused"):
            client.create_job(TASKS)

    def test_missing_id(self):
        def handler(request):
            return httpx.Response(201, json={"data": {"status": "waiting"}})

        client = CloudConvertClient(
            "k", http_client=httpx.Client(transport=httpx.MockTransport(handler))
        )
        with pytest.raises(ConversionJobError, match="no id"):
            client.create_job(TASKS)

    def test_api_key_required(self):
        with pytest.raises(ValueError):
            CloudConvertClient("")


# ── Polling ──────────────────────────────────────────────────────────


class TestWait:

    def test_finishes_after_processing(self, cloudconvert):
        client = cloudconvert.client()
        job = client.wait(client.create_job(TASKS))

        assert job.state is JobState.FINISHED
        assert job.polls == 2
        assert cloudconvert.sleeps == [1.0]

    def test_backoff_is_bounded(self, cloudconvert):
        cloudconvert.statuses = ["waiting"] + ["processing"] * 5 + ["finished"]
        client = cloudconvert.client()
        client.wait(client.create_job(TASKS))

        assert cloudconvert.sleeps == pytest.approx([1.0, 1.5, 2.25, 3.375, 5.0, 5.0])

    def test_error_status_returned_not_raised(self, cloudconvert):
        cloudconvert.statuses = ["error"]
        cloudconvert.tasks = error_tasks("PDF is password protected")
        client = cloudconvert.client()
        job = client.wait(client.create_job(TASKS))

        assert job.state is JobState.ERRORED
        assert job.failure_message() == "optimize-pdf: PDF is password protected"

    def test_timeout(self, cloudconvert):
        cloudconvert.statuses = ["processing"]
        client = cloudconvert.client()
        job = client.create_job(TASKS)

        with pytest.raises(ConversionTimeout) as exc:
            client.wait(job, timeout=10)

        assert exc.value.job_id == "job-1"
        assert sum(cloudconvert.sleeps) == pytest.approx(10)
        assert job.state is JobState.POLLING

    def test_slow_service_cannot_stretch_budget(self, cloudconvert):
        cloudconvert.statuses = ["processing"]
        cloudconvert.poll_seconds = 29
        client = cloudconvert.client()
        job = client.create_job(TASKS)

        with pytest.raises(ConversionTimeout):
            client.wait(job, timeout=60)

        assert cloudconvert.now <= 60
        assert cloudconvert.polls == 2

    def test_poll_request_cut_at_deadline(self, cloudconvert):
        cloudconvert.statuses = ["processing"]
        cloudconvert.poll_seconds = 50
        client = cloudconvert.client()
        job = client.create_job(TASKS)

        with pytest.raises(ConversionTimeout):
            client.wait(job, timeout=60)

        # Second poll only gets the 9s left and times out at the deadline
        assert cloudconvert.now == pytest.approx(60)
        assert cloudconvert.polls == 1

    def test_timeout_is_a_job_error(self):
        assert issubclass(ConversionTimeout, ConversionJobError)
        assert issubclass(ConversionCancelled, ConversionJobError)

    def test_cancel_before_first_poll(self, cloudconvert):
        client = cloudconvert.client()
        job = client.create_job(TASKS)
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ConversionCancelled):
            client.wait(job, cancel_event=cancel)
        assert cloudconvert.polls == 0

    def test_cancel_while_waiting(self, cloudconvert):
        cloudconvert.statuses = ["processing"]
        client = cloudconvert.client()
        job = client.create_job(TASKS)

        class SetOnWait(threading.Event):
            def wait(self, timeout=None):
                self.set()
                return True

        with pytest.raises(ConversionCancelled):
            client.wait(job, cancel_event=SetOnWait())
        assert cloudconvert.polls == 1


# ── Job state ────────────────────────────────────────────────────────


class TestConversionJob:

    def test_terminal_states(self):
        assert JobState.FINISHED.is_terminal
        assert JobState.ERRORED.is_terminal
        assert not JobState.POLLING.is_terminal
        assert not JobState.SUBMITTED.is_terminal

    def test_no_transition_out_of_terminal(self):
        job = ConversionJob(id="j")
        job.advance({"status": "finished", "tasks": []})
        with pytest.raises(ConversionJobError, match="illegal transition"):
            job.advance({"status": "processing"})

    def test_unknown_remote_status_keeps_polling(self):
        job = ConversionJob(id="j")
        assert job.advance({"status": "queued"}) is JobState.POLLING

    def test_export_urls_only_from_finished_export_tasks(self):
        tasks = finished_tasks()
        tasks.append({
            "name": "export-other",
            "operation": "export/url",
            "status": "error",
            "result": {"files": [{"filename": "x.pdf", "url": "https://nope"}]},
        })
        job = ConversionJob(id="j", data={"tasks": tasks})

        urls = [f["url"] for f in job.export_urls()]
        assert PDF_URL in urls
        assert "https://nope" not in urls
        assert len(urls) == 2

    def test_task_lookup(self):
        job = ConversionJob(id="j", data={"tasks": finished_tasks()})
        assert job.task("export-pdf")["operation"] == "export/url"
        assert job.task("missing") is None


# ── Downloads ────────────────────────────────────────────────────────


class TestDownload:

    def test_download(self, cloudconvert):
        assert cloudconvert.client().download(PDF_URL) == b"%PDF-1.4 optimized"

    def test_download_bounded_by_deadline(self, cloudconvert):
        cloudconvert.download_seconds = 30
        with pytest.raises(ConversionTimeout):
            cloudconvert.client().download(PDF_URL, deadline=10)
        assert cloudconvert.now == pytest.approx(10)

    def test_download_after_deadline_not_attempted(self, cloudconvert):
        cloudconvert.now = 20
        cloudconvert.download_seconds = 1
        with pytest.raises(ConversionTimeout):
            cloudconvert.client().download(PDF_URL, deadline=10)
        assert cloudconvert.now == 20

    def test_download_failure_raises_http_error(self, cloudconvert):
        cloudconvert.failing_urls.add(PDF_URL)
        with pytest.raises(httpx.HTTPStatusError):
            cloudconvert.client().download(PDF_URL)
