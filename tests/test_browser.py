from __future__ import annotations

from contextlib import contextmanager

import pytest
from playwright.sync_api import Error as PlaywrightError

from aibrief.errors import RenderError, ResourceError
from aibrief.report.assemble import assemble, default_cover, default_footer
from aibrief.report.browser import BrowserPrintRenderer, wait_for_images

from conftest import FakeBrowser, FakePage, fake_session, pdf_pages, tiny_pdf


def _assemble(renderer, settings, sections):
    return assemble(default_cover('Acme', settings), sections, default_footer(settings), renderer, settings=settings)


def test_prints_paginated_html_through_the_browser(settings, sample_sections):
    page = FakePage(pdf=tiny_pdf(5))
    renderer = BrowserPrintRenderer(settings, session_factory=fake_session(FakeBrowser(page)))

    payload = _assemble(renderer, settings, sample_sections)

    assert pdf_pages(payload) == 5
    assert '@page' in page.content
    assert 'Competitive Intelligence' in page.content
    assert page.media == 'print'
    assert page.pdf_kwargs['format'] == 'A4'
    assert page.pdf_kwargs['print_background'] is True
    assert page.closed


def test_slow_images_do_not_block_printing(settings, sample_sections):
    page = FakePage(pdf=tiny_pdf(), images_ready=False)
    renderer = BrowserPrintRenderer(settings, session_factory=fake_session(FakeBrowser(page)))
    assert pdf_pages(_assemble(renderer, settings, sample_sections)) == 1


def test_wait_for_images_reports_timeout():
    assert wait_for_images(FakePage(), 100) is True
    assert wait_for_images(FakePage(images_ready=False), 100) is False


def test_print_failure_is_a_render_error(settings, sample_sections):
    page = FakePage()
    page.pdf_error = PlaywrightError('Target closed')
    renderer = BrowserPrintRenderer(settings, session_factory=fake_session(FakeBrowser(page)))

    with pytest.raises(RenderError) as excinfo:
        _assemble(renderer, settings, sample_sections)
    assert excinfo.value.backend == 'browser'
    assert page.closed


def test_missing_browser_falls_back_to_vector(settings, sample_sections):
    @contextmanager
    def no_browser(_settings):
        raise ResourceError('Executable does not exist', backend='browser')
        yield

    renderer = BrowserPrintRenderer(settings, session_factory=no_browser)
    payload = _assemble(renderer, settings, sample_sections)

    assert payload.startswith(b'%PDF-')
    assert pdf_pages(payload) == len(sample_sections) + 2


def test_page_creation_failure_is_a_render_error(settings, sample_sections):
    page = FakePage(pdf=tiny_pdf())
    browser = FakeBrowser(page, page_error=PlaywrightError('Browser has been closed'))
    renderer = BrowserPrintRenderer(settings, session_factory=fake_session(browser))

    with pytest.raises(RenderError) as excinfo:
        _assemble(renderer, settings, sample_sections)
    assert excinfo.value.backend == 'browser'
    assert page.closed is False
