from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

from .storage import ReportPaths, append_event, job_exists, read_json, write_json_atomic
from .types import JobState, JobStatus


_STATE_LOCK = threading.RLock()


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def save_job_state(job: JobState) -> JobState:
    with _STATE_LOCK:
        job.updated_at = now_utc()
        write_json_atomic(ReportPaths.for_job(job.id).state, job.model_dump(mode='json'))
    return job


def load_job_state(job_id: UUID | str) -> JobState | None:
    """Return the stored job, or None for unknown or malformed ids."""
    if not job_exists(job_id):
        return None
    with _STATE_LOCK:
        payload = read_json(ReportPaths.for_job(job_id).state)
    return JobState.model_validate(payload)


def mutate_job_state(job_id: UUID | str, fn: Callable[[JobState], None]) -> JobState:
    with _STATE_LOCK:
        job = load_job_state(job_id)
        if job is None:
            raise FileNotFoundError(f'Job not found: {job_id}')
        fn(job)
        return save_job_state(job)


def set_status(job_id: UUID | str, status: JobStatus, message: str) -> JobState:
    def apply(job: JobState) -> None:
        job.status = status
        job.message = message

    job = mutate_job_state(job_id, apply)
    append_event(job_id, 'status', status=status.value, message=message)
    return job


def fail_job(job_id: UUID | str, *, message: str, error: str, retryable: bool = False) -> JobState:
    def apply(job: JobState) -> None:
        job.status = JobStatus.failed
        job.message = message
        job.error = error
        job.retryable = retryable
        job.pdf_ready = False

    job = mutate_job_state(job_id, apply)
    append_event(job_id, 'failed', message=message, error=error, retryable=retryable)
    return job
