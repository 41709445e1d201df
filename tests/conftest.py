from __future__ import annotations

import io
from contextlib import contextmanager

import pytest
from PIL import Image
from pypdf import PdfReader
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from aibrief.config import get_settings
from aibrief.report.sections import ReportSection, Statistic


_ISOLATED_ENV = (
    'OPENAI_API_KEY',
    'API_KEY',
    'LLM_API_KEY',
    'BASE_URL',
    'OPENAI_BASE_URL',
    'LLM_BASE_URL',
    'IMAGEGEN_BASE_URL',
    'IMAGEGEN_API_KEY',
    'COVER_IMAGE_URL',
    'PDF_FONT_PATH',
    'PDF_BOLD_FONT_PATH',
    'PDF_ITALIC_FONT_PATH',
)


@pytest.fixture(autouse=True)
def settings(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv('DATA_DIR', str(tmp_path / 'data'))
    for key in _ISOLATED_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv('IMAGEGEN_PLACEHOLDER_URLS', '')
    monkeypatch.setenv('PDF_BACKEND', 'vector')
    monkeypatch.setenv('PDF_FALLBACK_BACKEND', 'vector')
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def sample_sections() -> list[ReportSection]:
    return [
        ReportSection(
            title='Executive Summary',
            main_content=(
                '**Where you stand**\n'
                'Your team spends 12 hours a week on manual reporting.\n\n'
                '• Automate weekly reports\n'
                '• Route inbound leads with AI scoring\n\n'
                'Early adopters see returns within one quarter.'
            ),
            key_takeaways=('Automation frees 12 hours a week', 'Start with reporting'),
        ),
        ReportSection(
            title='Strategic AI Roadmap',
            main_content='1. Pilot an assistant\n2. Connect the CRM\n3. Measure ROI',
            statistic=Statistic(value='287%', description='Average ROI'),
        ),
        ReportSection(
            title='Competitive Intelligence',
            main_content='Competitors already use AI chat on their websites.',
            pull_quote='Move before your market does',
        ),
    ]


def png_bytes(width: int = 64, height: int = 32, color: str = '#08b2c6') -> bytes:
    buffer = io.BytesIO()
    Image.new('RGB', (width, height), color).save(buffer, format='PNG')
    return buffer.getvalue()


def tiny_pdf(pages: int = 1) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
    for index in range(pages):
        pdf.drawString(72, 720, f'page {index + 1}')
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def pdf_pages(payload: bytes) -> int:
    return len(PdfReader(io.BytesIO(payload)).pages)


def pdf_text(payload: bytes) -> str:
    return '\n'.join(page.extract_text() or '' for page in PdfReader(io.BytesIO(payload)).pages)


class FakePage:
    def __init__(self, *, screenshot: bytes | None = None, pdf: bytes | None = None, images_ready: bool = True):
        self.screenshot_bytes = screenshot
        self.pdf_bytes = pdf
        self.images_ready = images_ready
        self.content = ''
        self.media = None
        self.pdf_kwargs: dict = {}
        self.closed = False
        self.pdf_error: Exception | None = None

    def set_content(self, html, wait_until=None, timeout=None):
        self.content = html

    def wait_for_function(self, expression, timeout=None):
        if not self.images_ready:
            from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

            raise PlaywrightTimeoutError('images still loading')

    def emulate_media(self, media=None):
        self.media = media

    def screenshot(self, full_page=False, type='png'):
        return self.screenshot_bytes

    def pdf(self, **kwargs):
        self.pdf_kwargs = kwargs
        if self.pdf_error is not None:
            raise self.pdf_error
        return self.pdf_bytes

    def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page: FakePage, *, page_error: Exception | None = None):
        self.page = page
        self.page_error = page_error
        self.page_kwargs: dict = {}

    def new_page(self, **kwargs):
        self.page_kwargs = kwargs
        if self.page_error is not None:
            raise self.page_error
        return self.page


def fake_session(browser: FakeBrowser):
    @contextmanager
    def factory(settings):
        yield browser

    return factory


def report_payload(**overrides) -> dict:
    payload = {
        'executiveSummary': 'Acme can save 20% of support time with AI triage.',
        'quickWins': [
            {'title': 'AI inbox triage', 'description': 'Sort tickets.', 'timeframe': '2-4 weeks', 'impact': 'High'},
            {'title': 'Meeting notes', 'description': 'Auto summaries.', 'timeframe': '1 week', 'impact': 'Medium'},
        ],
        'recommendations': [
            {'title': 'CRM copilot', 'description': 'Draft follow-ups.', 'roi': '3x pipeline velocity'},
            {'title': 'Forecasting', 'description': 'Predict demand.', 'roi': '15% less stock'},
        ],
        'competitiveAnalysis': 'Two local competitors already run AI chat.',
        'nextSteps': ['Pick a pilot', 'Connect the CRM', 'Review after 30 days'],
        'sources': [
            {'title': 'Survey A', 'url': 'https://example.com/a'},
            {'title': 'Survey B', 'url': 'https://example.com/b'},
            {'title': 'Survey C', 'url': 'https://example.com/c'},
        ],
    }
    payload.update(overrides)
    return payload


def questions_payload(**overrides) -> dict:
    payload = {
        'summary': 'Acme Dental runs two clinics and books most visits by phone.',
        'questions': [
            {'type': 'multiple_choice', 'text': 'How do patients book?', 'options': ['Phone', 'Online']},
            {'type': 'text', 'text': 'Which task eats most front-desk time?', 'options': []},
        ],
        'sources': [{'title': 'Dental AI trends', 'url': 'https://example.com/dental'}],
    }
    payload.update(overrides)
    return payload


def survey_body(**overrides) -> dict:
    body = {
        'companyInfo': {'companyName': 'Acme Dental', 'industry': 'Healthcare', 'websiteURL': 'acmedental.com'},
        'aiSummary': 'Front desk is overloaded with appointment calls.',
    }
    body.update(overrides)
    return body


class FakeReportGenerator:
    def __init__(self, outcome):
        self.outcome = outcome
        self.surveys: list = []
        self.questions_outcome: object = questions_payload()
        self.profiles: list = []

    async def generate_report(self, survey):
        from aibrief.report.schema import parse_report_result

        self.surveys.append(survey)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return parse_report_result(self.outcome).value

    async def generate_questions(self, profile):
        from aibrief.report.schema import parse_questions_result

        self.profiles.append(profile)
        if isinstance(self.questions_outcome, Exception):
            raise self.questions_outcome
        return parse_questions_result(self.questions_outcome).value


@pytest.fixture
def fake_llm(monkeypatch):
    """Patch the report generator; set ``.outcome`` or ``.questions_outcome`` to a payload or an exception."""
    generator = FakeReportGenerator(report_payload())
    monkeypatch.setattr('aibrief.runner.ReportGenerator.from_settings', lambda settings: generator)
    return generator
