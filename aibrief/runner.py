from __future__ import annotations

import asyncio
import logging
import traceback
from typing import Any
from uuid import UUID

from .adapters.imagegen import ImageGenAdapter, ImageGenConfig
from .adapters.llm import ReportGenerator
from .config import get_settings
from .errors import ReportError, ValidationError
from .report.assemble import render_report_pdf
from .report.sections import section_to_payload, transform_report_to_sections
from .state import fail_job, load_job_state, mutate_job_state, save_job_state, set_status
from .storage import ReportPaths, append_event, read_events, read_json, write_bytes_atomic, write_json_atomic
from .survey import SurveyInput, parse_survey_input
from .types import JobState, JobStatus


logger = logging.getLogger(__name__)


def create_job(survey: SurveyInput, *, backend: str | None = None) -> JobState:
    settings = get_settings()
    job = JobState(
        company_name=survey.company_name,
        backend=str(backend or settings.pdf_backend),
    )
    save_job_state(job)
    survey_path = write_json_atomic(ReportPaths.for_job(job.id).survey, survey.to_payload())

    def apply_input(state: JobState) -> None:
        state.artifacts.input_path = str(survey_path)

    mutate_job_state(job.id, apply_input)
    append_event(job.id, 'created', company_name=job.company_name, backend=job.backend)
    return load_job_state(job.id) or job


def _load_survey(job_id: UUID | str) -> SurveyInput:
    parsed = parse_survey_input(read_json(ReportPaths.for_job(job_id).survey))
    if not parsed.ok:
        raise ValidationError(f'Stored survey input is invalid: {parsed.message}', parsed.errors)
    return parsed.value


async def run_job_async(job_id: UUID | str) -> None:
    settings = get_settings()
    job = load_job_state(job_id)
    if job is None:
        raise FileNotFoundError(f'Job not found: {job_id}')
    paths = ReportPaths.for_job(job_id)
    survey = _load_survey(job_id)

    set_status(job_id, JobStatus.generating_report, 'Generating the AI opportunities report...')
    report = await ReportGenerator.from_settings(settings).generate_report(survey)
    write_json_atomic(paths.report_json, report.to_payload())

    set_status(job_id, JobStatus.generating_images, 'Generating section banner images...')
    sections = transform_report_to_sections(report)
    sections = await ImageGenAdapter(ImageGenConfig.from_settings(settings)).attach_banners(sections)
    write_json_atomic(paths.sections_json, [section_to_payload(section) for section in sections])

    set_status(job_id, JobStatus.rendering_pdf, f'Rendering PDF with the {job.backend} backend...')
    # Sync Playwright refuses to run inside an event loop.
    pdf_bytes = await asyncio.to_thread(render_report_pdf, sections, survey.company_name, job.backend)
    write_bytes_atomic(paths.report_pdf, pdf_bytes)

    def apply_completed(state: JobState) -> None:
        state.status = JobStatus.completed
        state.message = 'Report ready.'
        state.error = None
        state.retryable = False
        state.section_count = len(sections)
        state.pdf_ready = True
        state.pdf_size_bytes = len(pdf_bytes)
        state.artifacts.report_json_path = str(paths.report_json)
        state.artifacts.sections_json_path = str(paths.sections_json)
        state.artifacts.report_pdf_path = str(paths.report_pdf)

    mutate_job_state(job_id, apply_completed)
    append_event(job_id, 'completed', pdf_size_bytes=len(pdf_bytes), section_count=len(sections))
    logger.info('Job %s completed: %s sections, %s bytes', job_id, len(sections), len(pdf_bytes))


def run_job(job_id: UUID | str) -> None:
    try:
        asyncio.run(run_job_async(job_id))
    except Exception as exc:
        detail = ''.join(traceback.format_exception_only(type(exc), exc)).strip()
        logger.exception('Job %s failed', job_id)
        append_event(job_id, 'pipeline_exception', error=detail, stack=traceback.format_exc())
        fail_job(
            job_id,
            message='Report generation failed.',
            error=detail,
            retryable=isinstance(exc, ReportError) and exc.retryable,
        )


def job_snapshot(job: JobState, *, recent_events: int = 0) -> dict[str, Any]:
    payload = job.model_dump(mode='json')
    if recent_events > 0:
        # Stack traces stay in events.jsonl.
        payload['events'] = [
            {key: value for key, value in row.items() if key != 'stack'}
            for row in read_events(job.id, limit=recent_events)
        ]
    payload['status_url'] = f'/api/report/jobs/{job.id}'
    payload['result_url'] = f'/api/report/jobs/{job.id}/result'
    return payload
