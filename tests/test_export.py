from __future__ import annotations

import base64

import pytest

from aibrief.report.export import build_email_attachment, pdf_to_base64, report_filename


@pytest.mark.parametrize(
    'name, expected',
    [
        ('Acme Dental', 'AI-Report-Acme-Dental.pdf'),
        ('  Smith &  Sons\tLLC ', 'AI-Report-Smith--Sons-LLC.pdf'),
        ('', 'AI-Report-Report.pdf'),
        (None, 'AI-Report-Report.pdf'),
        ('///', 'AI-Report-Report.pdf'),
    ],
)
def test_report_filename(name, expected):
    assert report_filename(name) == expected


def test_email_attachment_carries_base64_pdf():
    attachment = build_email_attachment(b'%PDF-1.4 body', 'Acme')

    assert attachment == {
        'content': pdf_to_base64(b'%PDF-1.4 body'),
        'filename': 'AI-Report-Acme.pdf',
        'type': 'application/pdf',
        'disposition': 'attachment',
    }
    assert base64.b64decode(attachment['content']) == b'%PDF-1.4 body'
