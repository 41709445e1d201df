from __future__ import annotations

import argparse
import json
import logging
import subprocess
import sys
import time
from pathlib import Path

from aibrief.config import get_settings
from aibrief.errors import ReportError
from aibrief.report.assemble import render_report_pdf
from aibrief.report.export import report_filename
from aibrief.report.renderer import BACKEND_NAMES
from aibrief.report.sections import parse_sections
from aibrief.runner import create_job, job_snapshot, run_job
from aibrief.state import load_job_state
from aibrief.storage import ReportPaths, append_event, read_json
from aibrief.survey import parse_survey_input
from aibrief.types import JobState, JobStatus


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _load_json_file(path: Path) -> object:
    return json.loads(path.read_text(encoding='utf-8'))


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


def _submit_response(job: JobState, completed: bool) -> dict:
    payload: dict = {
        'job_id': str(job.id),
        'status': job.status.value,
        'message': job.message,
        'completed': completed,
    }
    if completed:
        payload['result'] = {
            'report_json_path': job.artifacts.report_json_path,
            'report_pdf_path': job.artifacts.report_pdf_path,
        }
    if job.status == JobStatus.failed:
        payload['error'] = job.error
        payload['retryable'] = job.retryable
    return payload


def _spawn_worker(job_id: str) -> int:
    """Start `_run-job` in its own session so it outlives this command."""
    script = Path(__file__).resolve()
    paths = ReportPaths.for_job(job_id)
    command = [sys.executable, str(script), '_run-job', '--job-id', str(job_id)]
    with paths.worker_stdout.open('ab') as stdout, paths.worker_stderr.open('ab') as stderr:
        worker = subprocess.Popen(
            command,
            cwd=str(script.parent),
            start_new_session=True,
            stdout=stdout,
            stderr=stderr,
        )
    append_event(job_id, 'worker_spawned', pid=worker.pid, log=str(paths.worker_stderr))
    return worker.pid


def cmd_render(args: argparse.Namespace) -> int:
    sections_path = Path(args.sections).expanduser().resolve()
    if not sections_path.is_file():
        _print_json({'status': 'error', 'message': f'Sections file not found: {sections_path}'})
        return 2
    try:
        raw = _load_json_file(sections_path)
    except (OSError, json.JSONDecodeError) as exc:
        _print_json({'status': 'error', 'message': f'Cannot read sections file: {exc}'})
        return 2
    if isinstance(raw, dict):
        raw = raw.get('sections')
    parsed = parse_sections(raw)
    if not parsed.ok:
        _print_json({'status': 'error', 'message': 'Invalid sections', 'details': parsed.errors})
        return 2

    output = Path(args.output or report_filename(args.business_name)).expanduser().resolve()
    try:
        pdf_bytes = render_report_pdf(parsed.value, args.business_name, args.backend)
    except ReportError as exc:
        _print_json({'status': 'error', 'message': str(exc), 'retryable': exc.retryable})
        return 1
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(pdf_bytes)
    _print_json({'status': 'ok', 'output': str(output), 'size_bytes': len(pdf_bytes)})
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from aibrief.server import create_app

    settings = get_settings()
    app = create_app(settings)
    app.run(
        host=args.host or settings.server_host,
        port=args.port or settings.server_port,
        threaded=True,
    )
    return 0


def cmd_submit(args: argparse.Namespace) -> int:
    settings = get_settings()
    survey_path = Path(args.survey).expanduser().resolve()
    if not survey_path.is_file():
        _print_json({'status': 'error', 'message': f'Survey file not found: {survey_path}'})
        return 2
    try:
        raw = _load_json_file(survey_path)
    except (OSError, json.JSONDecodeError) as exc:
        _print_json({'status': 'error', 'message': f'Cannot read survey file: {exc}'})
        return 2
    parsed = parse_survey_input(raw)
    if not parsed.ok:
        _print_json({'status': 'error', 'message': 'Invalid survey input', 'details': parsed.errors})
        return 2

    job = create_job(parsed.value, backend=args.backend)
    _spawn_worker(str(job.id))

    wait_seconds = args.wait_seconds
    if wait_seconds is None:
        wait_seconds = settings.submit_default_wait_seconds
    wait_seconds = max(0, int(wait_seconds))

    deadline = time.time() + wait_seconds
    poll_interval = max(0.3, float(settings.submit_poll_interval_seconds))

    latest = job
    while time.time() <= deadline:
        current = load_job_state(job.id)
        if current is not None:
            latest = current
        if latest.status in {JobStatus.completed, JobStatus.failed}:
            break
        if wait_seconds == 0:
            break
        time.sleep(poll_interval)

    _print_json(_submit_response(latest, completed=latest.status == JobStatus.completed))
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    job = load_job_state(args.job_id)
    if job is None:
        _print_json({'status': 'error', 'message': f'Job not found: {args.job_id}'})
        return 2

    _print_json(job_snapshot(job, recent_events=args.events))
    return 0


def cmd_result(args: argparse.Namespace) -> int:
    job = load_job_state(args.job_id)
    if job is None:
        _print_json({'status': 'error', 'message': f'Job not found: {args.job_id}'})
        return 2

    if job.status != JobStatus.completed:
        _print_json(
            {
                'status': 'not_ready',
                'job_id': str(job.id),
                'current_status': job.status.value,
                'message': job.message,
                'error': job.error,
            }
        )
        return 0

    report_path = Path(job.artifacts.report_json_path or '')
    pdf_path = Path(job.artifacts.report_pdf_path or '')

    if args.format == 'pdf':
        if not pdf_path.exists():
            _print_json({'status': 'error', 'message': f'PDF report missing: {pdf_path}'})
            return 2
        if args.output:
            output = Path(args.output).expanduser().resolve()
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_bytes(pdf_path.read_bytes())
            _print_json({'job_id': str(job.id), 'output': str(output)})
        else:
            _print_json({'job_id': str(job.id), 'report_pdf_path': str(pdf_path)})
        return 0

    _print_json(
        {
            'job_id': str(job.id),
            'report_pdf_path': str(pdf_path) if pdf_path.exists() else None,
            'report': read_json(report_path) if report_path.exists() else None,
        }
    )
    return 0


def cmd_run_job(args: argparse.Namespace) -> int:
    run_job(str(args.job_id))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='AI opportunities report service CLI')
    sub = parser.add_subparsers(dest='command', required=True)

    render = sub.add_parser('render', help='Render a sections JSON file to PDF')
    render.add_argument('--sections', required=True, help='Path to a JSON list of report sections')
    render.add_argument('--business-name', required=True, help='Business name shown on the cover')
    render.add_argument('--backend', choices=list(BACKEND_NAMES), required=False)
    render.add_argument('--output', required=False, help='Output PDF path')
    render.set_defaults(func=cmd_render)

    serve = sub.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', required=False)
    serve.add_argument('--port', type=int, required=False)
    serve.set_defaults(func=cmd_serve)

    submit = sub.add_parser('submit', help='Submit a report job from a survey JSON file')
    submit.add_argument('--survey', required=True, help='Path to survey JSON file')
    submit.add_argument('--backend', choices=list(BACKEND_NAMES), required=False)
    submit.add_argument('--wait-seconds', type=int, required=False, help='Wait window before returning')
    submit.set_defaults(func=cmd_submit)

    status = sub.add_parser('status', help='Get job status')
    status.add_argument('--job-id', required=True, help='Job ID')
    status.add_argument('--events', type=int, default=0, help='Include the N most recent job events')
    status.set_defaults(func=cmd_status)

    result = sub.add_parser('result', help='Fetch completed result')
    result.add_argument('--job-id', required=True, help='Job ID')
    result.add_argument('--format', choices=['json', 'pdf'], default='json')
    result.add_argument('--output', required=False, help='Copy the PDF here (pdf format only)')
    result.set_defaults(func=cmd_result)

    run_job_cmd = sub.add_parser('_run-job', help=argparse.SUPPRESS)
    run_job_cmd.add_argument('--job-id', required=True)
    run_job_cmd.set_defaults(func=cmd_run_job)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging()
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())
