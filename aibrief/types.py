from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


T = TypeVar('T')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Parsed(Generic[T]):
    """Tagged outcome of parsing untrusted JSON into a typed value."""

    ok: bool
    value: T | None = None
    errors: list[str] = field(default_factory=list)

    @classmethod
    def success(cls, value: T) -> 'Parsed[T]':
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, errors: list[str]) -> 'Parsed[T]':
        return cls(ok=False, value=None, errors=list(errors))

    @property
    def message(self) -> str:
        return '; '.join(self.errors) if self.errors else 'ok'


class JobStatus(str, Enum):
    queued = 'queued'
    generating_report = 'generating_report'
    generating_images = 'generating_images'
    rendering_pdf = 'rendering_pdf'
    completed = 'completed'
    failed = 'failed'


class JobArtifacts(BaseModel):
    input_path: str | None = None
    report_json_path: str | None = None
    sections_json_path: str | None = None
    report_pdf_path: str | None = None


class JobState(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    company_name: str
    backend: str = 'vector'

    status: JobStatus = JobStatus.queued
    message: str = 'Job queued.'
    error: str | None = None
    retryable: bool = False

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    section_count: int = 0
    pdf_ready: bool = False
    pdf_size_bytes: int = 0

    artifacts: JobArtifacts = Field(default_factory=JobArtifacts)
    metadata: dict[str, Any] = Field(default_factory=dict)
