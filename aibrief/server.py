from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from .config import Settings, get_settings
from .errors import RenderError, ReportError, ResourceError, UpstreamError, UpstreamTimeout, ValidationError
from .adapters.llm import ReportGenerator
from .ratelimit import InMemoryRateCounter, RateCounter, client_key
from .report.assemble import render_report_pdf
from .report.export import build_email_attachment, pdf_to_base64, report_filename
from .report.renderer import BACKEND_NAMES
from .report.sections import ReportSection, parse_sections
from .runner import create_job, job_snapshot, run_job
from .state import load_job_state
from .storage import ReportPaths, read_json
from .survey import parse_company_profile, parse_survey_input
from .types import JobStatus


logger = logging.getLogger(__name__)


def error_status(exc: ReportError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, ResourceError):
        return 503
    if isinstance(exc, RenderError):
        return 500
    if isinstance(exc, UpstreamTimeout):
        return 504
    if isinstance(exc, UpstreamError):
        return 502
    return 500


def _error_response(exc: ReportError, **extra: Any):
    body: dict[str, Any] = {**extra, 'error': str(exc), 'retryable': exc.retryable}
    if isinstance(exc, ValidationError) and exc.errors:
        body['details'] = exc.errors
    if isinstance(exc, RenderError) and exc.backend:
        body['backend'] = exc.backend
    return jsonify(body), error_status(exc)


def _unexpected_error(route: str, **extra: Any):
    logger.exception('Unexpected error in %s', route)
    return jsonify({**extra, 'error': 'Internal server error', 'retryable': False}), 500


def _parse_pdf_request(data: dict[str, Any]) -> tuple[list[ReportSection], str, str | None]:
    parsed = parse_sections(data.get('sections'))
    if not parsed.ok:
        raise ValidationError(f'Invalid sections: {parsed.message}', parsed.errors)
    business_name = str(data.get('businessName') or '').strip()
    if not business_name:
        raise ValidationError('Missing required parameter: businessName')
    backend = data.get('backend')
    if backend is not None and backend not in BACKEND_NAMES:
        raise ValidationError(f'Unknown backend: {backend!r}; expected one of {", ".join(BACKEND_NAMES)}')
    return parsed.value, business_name, backend


def create_app(
    settings: Settings | None = None,
    rate_counter: RateCounter | None = None,
    executor: Executor | None = None,
) -> Flask:
    resolved = settings or get_settings()
    counter = rate_counter or InMemoryRateCounter(
        resolved.rate_limit_requests,
        resolved.rate_limit_window_seconds,
    )
    jobs_executor = executor or ThreadPoolExecutor(
        max_workers=max(1, resolved.job_workers),
        thread_name_prefix='aibrief-job',
    )

    app = Flask(__name__)
    CORS(app)

    def rate_limited():
        key = client_key(request.headers.get('X-Forwarded-For'), request.remote_addr)
        decision = counter.hit(key)
        if decision.allowed:
            return None
        logger.warning('Rate limit exceeded for %s', key)
        response = jsonify({'error': 'Too many requests, please try again later.'})
        response.headers['Retry-After'] = str(max(1, int(decision.reset_in + 0.999)))
        return response, 429

    def render_from_request() -> tuple[bytes, str]:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError('Invalid JSON request')
        sections, business_name, backend = _parse_pdf_request(data)
        pdf_bytes = render_report_pdf(sections, business_name, backend, settings=resolved)
        return pdf_bytes, business_name

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify(
            {
                'service': resolved.app_name,
                'status': 'ok',
                'backends': list(BACKEND_NAMES),
                'default_backend': resolved.pdf_backend,
            }
        ), 200

    @app.route('/api/report/pdf', methods=['POST'])
    def report_pdf():
        limited = rate_limited()
        if limited is not None:
            return limited
        try:
            pdf_bytes, business_name = render_from_request()
        except ReportError as exc:
            logger.error('Error in /api/report/pdf: %s', exc)
            return _error_response(exc)
        except Exception:
            return _unexpected_error('/api/report/pdf')
        return Response(
            pdf_bytes,
            status=200,
            mimetype='application/pdf',
            headers={'Content-Disposition': f'attachment; filename="{report_filename(business_name)}"'},
        )

    @app.route('/api/report/generate-pdf', methods=['POST'])
    def report_generate_pdf():
        limited = rate_limited()
        if limited is not None:
            return limited
        try:
            pdf_bytes, business_name = render_from_request()
        except ReportError as exc:
            logger.error('Error in /api/report/generate-pdf: %s', exc)
            return _error_response(exc, success=False)
        except Exception:
            return _unexpected_error('/api/report/generate-pdf', success=False)
        return jsonify(
            {
                'success': True,
                'pdfBase64': pdf_to_base64(pdf_bytes),
                'filename': report_filename(business_name),
            }
        ), 200

    @app.route('/api/questions', methods=['POST'])
    def generate_questions():
        limited = rate_limited()
        if limited is not None:
            return limited
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({'error': 'Invalid JSON request'}), 400
        parsed = parse_company_profile(data)
        if not parsed.ok:
            return jsonify({'error': 'Invalid company profile', 'details': parsed.errors}), 400
        try:
            generator = ReportGenerator.from_settings(resolved)
            result = asyncio.run(generator.generate_questions(parsed.value))
        except ReportError as exc:
            logger.error('Error in /api/questions: %s', exc)
            return _error_response(exc)
        except Exception:
            return _unexpected_error('/api/questions')
        return jsonify(result.to_payload()), 200

    @app.route('/api/report/jobs', methods=['POST'])
    def submit_report_job():
        limited = rate_limited()
        if limited is not None:
            return limited
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({'error': 'Invalid JSON request'}), 400
        parsed = parse_survey_input(data)
        if not parsed.ok:
            return jsonify({'error': 'Invalid survey input', 'details': parsed.errors}), 400
        backend = data.get('backend')
        if backend is not None and backend not in BACKEND_NAMES:
            return jsonify({'error': f'Unknown backend: {backend!r}'}), 400

        try:
            job = create_job(parsed.value, backend=backend)
            jobs_executor.submit(run_job, job.id)
        except Exception:
            return _unexpected_error('/api/report/jobs')
        snapshot = job_snapshot(job)
        return jsonify(
            {
                'job_id': str(job.id),
                'status': job.status.value,
                'status_url': snapshot['status_url'],
                'result_url': snapshot['result_url'],
            }
        ), 202

    @app.route('/api/report/jobs/<job_id>', methods=['GET'])
    def report_job_status(job_id: str):
        job = load_job_state(job_id)
        if job is None:
            return jsonify({'error': 'Job not found'}), 404
        recent = request.args.get('events', default=20, type=int) or 0
        return jsonify(job_snapshot(job, recent_events=max(0, recent))), 200

    @app.route('/api/report/jobs/<job_id>/result', methods=['GET'])
    def report_job_result(job_id: str):
        job = load_job_state(job_id)
        if job is None:
            return jsonify({'error': 'Job not found'}), 404

        if job.status == JobStatus.failed:
            return jsonify({'error': job.error or 'Job failed', 'retryable': job.retryable}), 500
        if job.status != JobStatus.completed:
            return jsonify({'status': job.status.value, 'message': job.message}), 202

        paths = ReportPaths.for_job(job.id)
        pdf_bytes = paths.report_pdf.read_bytes()
        return jsonify(
            {
                'report': read_json(paths.report_json),
                'sections': read_json(paths.sections_json),
                'pdfBase64': pdf_to_base64(pdf_bytes),
                'attachment': build_email_attachment(pdf_bytes, job.company_name),
            }
        ), 200

    return app
