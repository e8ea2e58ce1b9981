"""
CloudConvert Client — submit, poll and fetch conversion jobs.

Only the handful of API v2 calls the PDF optimizer needs:

    POST /jobs          create a job from a dict of named tasks
    GET  /jobs/{id}     read job status and task results

A job is tracked locally as a small state machine:

    SUBMITTED → POLLING → FINISHED | ERRORED

`wait()` polls with bounded exponential backoff under an overall
wall-clock budget. Exceeding the budget raises ConversionTimeout and a
set cancel event raises ConversionCancelled; both are ConversionJobError,
so the caller degrades the same way as for a failed job.

## Environment Variables

- CLOUDCONVERT_API_KEY: API key (see config.loader)
- CLOUDCONVERT_API_URL: API base (default: https://api.cloudconvert.com/v2)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

from .errors import ConversionCancelled, ConversionJobError, ConversionTimeout

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.cloudconvert.com/v2"

# Poll defaults
WAIT_TIMEOUT_SECONDS = 60.0
POLL_INITIAL_SECONDS = 1.0
POLL_MAX_SECONDS = 5.0
POLL_BACKOFF = 1.5


class JobState(str, Enum):
    """Local view of a conversion job."""
    SUBMITTED = "submitted"
    POLLING = "polling"
    FINISHED = "finished"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.FINISHED, JobState.ERRORED)


_TRANSITIONS = {
    JobState.SUBMITTED: {JobState.POLLING, JobState.FINISHED, JobState.ERRORED},
    JobState.POLLING: {JobState.POLLING, JobState.FINISHED, JobState.ERRORED},
    JobState.FINISHED: set(),
    JobState.ERRORED: set(),
}


def _state_for_remote(status: Optional[str]) -> JobState:
    if status == "finished":
        return JobState.FINISHED
    if status == "error":
        return JobState.ERRORED
    return JobState.POLLING  # waiting / processing / anything new


@dataclass
class ConversionJob:
    """A submitted job plus the last payload the service returned for it."""

    id: str
    state: JobState = JobState.SUBMITTED
    data: Dict[str, Any] = field(default_factory=dict)
    polls: int = 0

    @property
    def tasks(self) -> List[Dict[str, Any]]:
        return list(self.data.get("tasks") or [])

    def advance(self, data: Dict[str, Any]) -> JobState:
        """Apply a fresh job payload and move to the state it implies."""
        new_state = _state_for_remote(data.get("status"))
        if new_state not in _TRANSITIONS[self.state]:
            raise ConversionJobError(
                f"illegal transition {self.state.value} → {new_state.value}",
                job_id=self.id,
            )
        self.state = new_state
        self.data = data
        return new_state

    def task(self, name: str) -> Optional[Dict[str, Any]]:
        """Find a task by the name it was submitted under."""
        for task in self.tasks:
            if task.get("name") == name:
                return task
        return None

    def failure_message(self) -> str:
        for task in self.tasks:
            if task.get("status") == "error":
                return f"{task.get('name')}: {task.get('message') or task.get('code') or 'unknown error'}"
        return self.data.get("message") or "Unknown error"

    def export_urls(self) -> List[Dict[str, Optional[str]]]:
        """All files exposed by finished export/url tasks."""
        files: List[Dict[str, Optional[str]]] = []
        for task in self.tasks:
            if task.get("operation") != "export/url" or task.get("status") != "finished":
                continue
            for f in (task.get("result") or {}).get("files") or []:
                files.append({"filename": f.get("filename"), "url": f.get("url")})
        return files


class CloudConvertClient:
    """Client for the CloudConvert job API."""

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_url = api_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "User-Agent": "attachment-pipeline/1.0",
        }
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None
        self._sleep = sleep
        self._clock = clock

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "CloudConvertClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    def create_job(self, tasks: Dict[str, Dict[str, Any]], tag: Optional[str] = None) -> ConversionJob:
        """Submit all tasks as one job."""
        payload: Dict[str, Any] = {"tasks": tasks}
        if tag:
            payload["tag"] = tag
        data = self._request("POST", "/jobs", json=payload)
        job_id = data.get("id")
        if not job_id:
            raise ConversionJobError("job creation returned no id")
        logger.info(f"Conversion job created: {job_id} ({len(tasks)} tasks)")
        return ConversionJob(id=job_id, data=data)

    def get_job(self, job_id: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = httpx.Timeout(max(0.001, timeout))
        return self._request("GET", f"/jobs/{job_id}", job_id=job_id, **kwargs)

    def deadline(self, budget: float) -> float:
        """Absolute deadline `budget` seconds from now, on this client's clock."""
        return self._clock() + budget

    def wait(
        self,
        job: ConversionJob,
        *,
        timeout: float = WAIT_TIMEOUT_SECONDS,
        initial_delay: float = POLL_INITIAL_SECONDS,
        max_delay: float = POLL_MAX_SECONDS,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> ConversionJob:
        """
        Poll until the job is terminal.

        Returns the job in FINISHED or ERRORED state; the caller decides
        what an error means. Each poll request is itself bounded by the
        budget left, so a slow service cannot stretch the wait.

        Raises:
            ConversionTimeout: budget exhausted before a terminal state.
            ConversionCancelled: cancel_event was set.
            ConversionJobError: the service could not be reached.
        """
        if deadline is None:
            deadline = self.deadline(timeout)
        delay = initial_delay

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise ConversionCancelled("cancelled while polling", job_id=job.id)

            remaining = self._check_deadline(deadline, job.id, "job not finished")
            try:
                data = self.get_job(job.id, timeout=remaining)
            except ConversionJobError as e:
                if self._clock() >= deadline:
                    raise ConversionTimeout(
                        f"job not finished in time: {e}", job_id=job.id
                    ) from e
                raise

            job.advance(data)
            job.polls += 1
            logger.debug(f"Conversion job {job.id}: poll {job.polls} → {job.state.value}")

            if job.state.is_terminal:
                logger.info(
                    f"Conversion job {job.id} {job.state.value} after {job.polls} poll(s)",
                    extra={"job_id": job.id},
                )
                return job

            remaining = self._check_deadline(deadline, job.id, "job not finished")
            pause = min(delay, remaining)
            if cancel_event is not None:
                if cancel_event.wait(pause):
                    raise ConversionCancelled("cancelled while polling", job_id=job.id)
            else:
                self._sleep(pause)
            delay = min(delay * POLL_BACKOFF, max_delay)

    def download(self, url: str, *, deadline: Optional[float] = None) -> bytes:
        """
        Fetch an exported file fully into memory.

        With a deadline, the request gets only the time left and
        ConversionTimeout is raised once it has passed.
        """
        kwargs: Dict[str, Any] = {}
        if deadline is not None:
            remaining = self._check_deadline(deadline, None, "download not started")
            kwargs["timeout"] = httpx.Timeout(remaining)
        try:
            response = self._client.get(url, follow_redirects=True, **kwargs)
        except httpx.TimeoutException as e:
            if deadline is not None and self._clock() >= deadline:
                raise ConversionTimeout(f"download did not finish in time: {url}") from e
            raise
        response.raise_for_status()
        return response.content

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _check_deadline(self, deadline: float, job_id: Optional[str], what: str) -> float:
        """Seconds left before `deadline`; ConversionTimeout when none."""
        remaining = deadline - self._clock()
        if remaining <= 0:
            raise ConversionTimeout(f"{what}: time budget exhausted", job_id=job_id)
        return remaining

    def _request(self, method: str, path: str, *, job_id: Optional[str] = None, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(
                method, f"{self._api_url}{path}", headers=self._headers, **kwargs
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise ConversionJobError(
                f"{method} {path} failed: HTTP {e.response.status_code}", job_id=job_id
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ConversionJobError(f"{method} {path} failed: {e}", job_id=job_id) from e

        if not isinstance(body, dict):
            raise ConversionJobError(f"{method} {path}: unexpected response", job_id=job_id)
        return body.get("data", body)
