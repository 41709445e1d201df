from __future__ import annotations

import base64
import re
from typing import Any


_WHITESPACE_RE = re.compile(r'\s+')
_UNSAFE_FILENAME_RE = re.compile(r'[^A-Za-z0-9._-]+')


def pdf_to_base64(pdf_bytes: bytes) -> str:
    return base64.b64encode(pdf_bytes).decode('ascii')


def report_filename(company_name: str | None) -> str:
    name = _WHITESPACE_RE.sub('-', str(company_name or '').strip())
    name = _UNSAFE_FILENAME_RE.sub('', name).strip('-.')
    return f'AI-Report-{name or "Report"}.pdf'


def build_email_attachment(pdf_bytes: bytes, company_name: str | None) -> dict[str, Any]:
    """Attachment payload in the shape transactional e-mail APIs accept."""
    return {
        'content': pdf_to_base64(pdf_bytes),
        'filename': report_filename(company_name),
        'type': 'application/pdf',
        'disposition': 'attachment',
    }
