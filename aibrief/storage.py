from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import UUID

from .config import get_settings


def jobs_root() -> Path:
    root = get_settings().data_dir / 'jobs'
    root.mkdir(parents=True, exist_ok=True)
    return root


def job_token(job_id: UUID | str) -> str:
    """Canonical directory name for a job; raises ValueError for non-UUID ids."""
    if isinstance(job_id, UUID):
        return str(job_id)
    token = str(job_id or '').strip()
    if not token:
        raise ValueError('job_id is required')
    try:
        return str(UUID(token))
    except ValueError as exc:
        raise ValueError(f'invalid job_id: {job_id}') from exc


def job_exists(job_id: UUID | str) -> bool:
    try:
        token = job_token(job_id)
    except ValueError:
        return False
    return (jobs_root() / token / 'job.json').exists()


@dataclass(frozen=True)
class ReportPaths:
    """Files kept under one report job directory."""

    root: Path

    @classmethod
    def for_job(cls, job_id: UUID | str) -> 'ReportPaths':
        root = jobs_root() / job_token(job_id)
        root.mkdir(parents=True, exist_ok=True)
        return cls(root=root)

    @property
    def state(self) -> Path:
        return self.root / 'job.json'

    @property
    def events(self) -> Path:
        return self.root / 'events.jsonl'

    @property
    def survey(self) -> Path:
        return self.root / 'input.json'

    @property
    def report_json(self) -> Path:
        return self.root / 'report.json'

    @property
    def sections_json(self) -> Path:
        return self.root / 'sections.json'

    @property
    def report_pdf(self) -> Path:
        return self.root / 'report.pdf'

    @property
    def worker_stdout(self) -> Path:
        return self.root / 'worker.stdout.log'

    @property
    def worker_stderr(self) -> Path:
        return self.root / 'worker.stderr.log'


def _replace_via_tmp(path: Path | str, write) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + '.tmp')
    write(tmp)
    tmp.replace(target)
    return target


def write_json_atomic(path: Path | str, payload: Any) -> Path:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    return _replace_via_tmp(path, lambda tmp: tmp.write_text(text, encoding='utf-8'))


def write_bytes_atomic(path: Path | str, content: bytes) -> Path:
    return _replace_via_tmp(path, lambda tmp: tmp.write_bytes(content))


def read_json(path: Path | str) -> Any:
    return json.loads(Path(path).read_text(encoding='utf-8'))


def append_event(job_id: UUID | str, event: str, **extra: Any) -> None:
    row = {'ts': datetime.now(timezone.utc).isoformat(), 'event': event, **extra}
    with ReportPaths.for_job(job_id).events.open('a', encoding='utf-8') as f:
        f.write(json.dumps(row, ensure_ascii=False) + '\n')


def read_events(job_id: UUID | str, *, limit: int | None = None) -> list[dict[str, Any]]:
    """Job events oldest first; ``limit`` keeps only the most recent rows."""
    path = ReportPaths.for_job(job_id).events
    if not path.exists():
        return []
    rows = [json.loads(line) for line in path.read_text(encoding='utf-8').splitlines() if line.strip()]
    if limit is not None:
        rows = rows[-limit:] if limit > 0 else []
    return rows
