from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, ContextManager, Iterator

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from ..config import Settings
from ..errors import RenderError, ResourceError
from .html_report import PAGE_HEIGHT_PX, PAGE_WIDTH_PX, build_report_html
from .renderer import Renderer, ReportDocument


logger = logging.getLogger(__name__)

SessionFactory = Callable[[Settings], ContextManager[Any]]

_IMAGES_COMPLETE_JS = '() => Array.from(document.images).every((img) => img.complete)'


@contextmanager
def browser_session(settings: Settings) -> Iterator[Any]:
    """Launch headless Chromium for one document and always shut it down."""
    try:
        playwright = sync_playwright().start()
    except PlaywrightError as exc:
        raise ResourceError(f'Playwright driver unavailable: {exc}', backend='browser') from exc

    try:
        try:
            browser = playwright.chromium.launch(headless=True, args=settings.browser_args())
        except PlaywrightError as exc:
            raise ResourceError(f'Headless browser could not be launched: {exc}', backend='browser') from exc
        try:
            yield browser
        finally:
            browser.close()
    finally:
        playwright.stop()


def wait_for_images(page: Any, timeout_ms: int) -> bool:
    """Block until every <img> has finished loading, at most ``timeout_ms``."""
    try:
        page.wait_for_function(_IMAGES_COMPLETE_JS, timeout=timeout_ms)
        return True
    except PlaywrightTimeoutError:
        logger.warning('Images still loading after %sms; capturing anyway', timeout_ms)
        return False


def load_document(page: Any, html: str, settings: Settings) -> None:
    page.set_content(html, wait_until='networkidle', timeout=settings.browser_content_timeout_ms)
    wait_for_images(page, settings.browser_image_wait_ms)


class BrowserPrintRenderer(Renderer):
    """Prints the paginated HTML document through Chromium's print engine."""

    name = 'browser'

    def __init__(self, settings: Settings | None = None, *, session_factory: SessionFactory | None = None):
        super().__init__(settings)
        self._session_factory = session_factory or browser_session

    def render(self, document: ReportDocument) -> bytes:
        html = build_report_html(document, mode='print')
        with self._session_factory(self.settings) as browser:
            page = None
            try:
                page = browser.new_page(viewport={'width': PAGE_WIDTH_PX, 'height': PAGE_HEIGHT_PX})
                load_document(page, html, self.settings)
                page.emulate_media(media='print')
                pdf_bytes = page.pdf(
                    format='A4',
                    print_background=True,
                    prefer_css_page_size=True,
                    margin={'top': '0', 'right': '0', 'bottom': '0', 'left': '0'},
                )
            except PlaywrightError as exc:
                raise RenderError(f'Browser print failed: {exc}', backend=self.name) from exc
            finally:
                if page is not None:
                    page.close()

        logger.info('Browser-printed PDF: %s bytes', len(pdf_bytes or b''))
        return pdf_bytes
