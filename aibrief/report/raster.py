from __future__ import annotations

import io
import logging
import math

from PIL import Image
from playwright.sync_api import Error as PlaywrightError
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..config import Settings
from ..errors import RenderError
from .browser import SessionFactory, browser_session, load_document
from .html_report import PAGE_HEIGHT_PX, build_report_html
from .renderer import Renderer, ReportDocument


logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
JPEG_QUALITY = 92


def compute_slices(total_height: int, slice_height: int) -> list[tuple[int, int]]:
    """Split ``total_height`` pixels into page-sized ``(top, bottom)`` bands.

    The last band keeps whatever remainder is left, so the bands always cover
    the whole bitmap.
    """
    if slice_height <= 0:
        raise ValueError('slice_height must be positive')
    if total_height <= 0:
        return []
    count = math.ceil(total_height / slice_height)
    return [(index * slice_height, min(total_height, (index + 1) * slice_height)) for index in range(count)]


class RasterRenderer(Renderer):
    """Captures the one-page screen layout as a bitmap and slices it over A4 pages."""

    name = 'raster'

    def __init__(self, settings: Settings | None = None, *, session_factory: SessionFactory | None = None):
        super().__init__(settings)
        self._session_factory = session_factory or browser_session

    def capture(self, document: ReportDocument) -> bytes:
        html = build_report_html(document, mode='screen')
        with self._session_factory(self.settings) as browser:
            page = None
            try:
                page = browser.new_page(
                    viewport={'width': self.settings.raster_viewport_width, 'height': PAGE_HEIGHT_PX},
                    device_scale_factor=self.settings.raster_scale,
                )
                load_document(page, html, self.settings)
                return page.screenshot(full_page=True, type='png')
            except PlaywrightError as exc:
                raise RenderError(f'Page capture failed: {exc}', backend=self.name) from exc
            finally:
                if page is not None:
                    page.close()

    def render(self, document: ReportDocument) -> bytes:
        screenshot = self.capture(document)
        if not screenshot:
            raise RenderError('Page capture produced no image', backend=self.name)
        return slice_bitmap_to_pdf(screenshot, title=f'{document.cover.title} - {document.cover.business_name}')


def slice_bitmap_to_pdf(bitmap: bytes, *, title: str = '') -> bytes:
    with Image.open(io.BytesIO(bitmap)) as source:
        image = source.convert('RGB')

    width, height = image.size
    if width <= 0 or height <= 0:
        raise RenderError('Captured bitmap is empty', backend='raster')

    slice_height = max(1, round(width * PAGE_HEIGHT / PAGE_WIDTH))
    slices = compute_slices(height, slice_height)

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
    if title:
        pdf.setTitle(title)
    for top, bottom in slices:
        band = image.crop((0, top, width, bottom))
        encoded = io.BytesIO()
        band.save(encoded, format='JPEG', quality=JPEG_QUALITY)
        drawn_height = PAGE_HEIGHT * (bottom - top) / slice_height
        pdf.drawImage(
            ImageReader(io.BytesIO(encoded.getvalue())),
            0,
            PAGE_HEIGHT - drawn_height,
            width=PAGE_WIDTH,
            height=drawn_height,
        )
        pdf.showPage()
    pdf.save()

    logger.info('Raster PDF: %sx%s bitmap over %s pages', width, height, len(slices))
    return buffer.getvalue()
