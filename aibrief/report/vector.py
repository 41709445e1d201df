from __future__ import annotations

import io
import logging
from dataclasses import replace

from reportlab.lib.colors import Color, HexColor, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..errors import RenderError
from .blocks import Block, BlockKind, TextRun, parse_inline
from .fonts import FontSet, resolve_fonts, safe_canvas_font
from .layout import PageCursor, measure, wrap_runs, wrap_text
from .renderer import (
    DARK,
    INK,
    MUTED,
    ORANGE,
    ORANGE_LIGHT,
    STAT_FILL,
    TAKEAWAY_FILL,
    TEAL,
    TEAL_LIGHT,
    CoverPage,
    FooterPage,
    PreparedSection,
    Renderer,
    ReportDocument,
)


logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4

LINE_SPACING = 1.55
BOX_PADDING = 18.0
LIST_INDENT = 18.0
QUOTE_INDENT = 16.0
CHECK_GLYPH = '4'


class VectorRenderer(Renderer):
    """Draws the report directly on a reportlab canvas.

    The canvas runs in invariant mode, so identical documents produce identical
    bytes.
    """

    name = 'vector'

    def render(self, document: ReportDocument) -> bytes:
        fonts = resolve_fonts(self.settings)
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
        pdf.setTitle(f'{document.cover.title} - {document.cover.business_name}')
        pdf.setAuthor(document.footer.brand_name)
        pdf.setSubject(document.cover.subtitle)
        pdf.setCreator(self.settings.app_name)
        pdf.setProducer(self.settings.app_name)

        painter = _Painter(pdf, fonts, self.settings, brand=document.footer.brand_name)
        try:
            painter.draw_cover(document.cover)
            for prepared in document.sections:
                painter.draw_section(prepared)
            painter.draw_footer_page(document.footer)
            pdf.save()
        except (ValueError, OSError) as exc:
            raise RenderError(f'Vector rendering failed: {exc}', backend=self.name) from exc

        logger.info(
            'Vector PDF rendered: %s sections, %s pages',
            len(document.sections),
            painter.page_count,
        )
        return buffer.getvalue()


class _Painter:
    def __init__(self, pdf: canvas.Canvas, fonts: FontSet, settings, *, brand: str):
        self.pdf = pdf
        self.fonts = fonts
        self.brand = brand
        self.margin = float(settings.pdf_page_margin)
        self.bottom = float(settings.pdf_bottom_margin)
        self.body_size = float(settings.pdf_body_font_size)
        self.banner_height = float(settings.pdf_banner_height)
        self.leading = self.body_size * LINE_SPACING
        self.content_width = PAGE_WIDTH - 2 * self.margin
        self.page_count = 0
        self.cursor = PageCursor(
            top=PAGE_HEIGHT - self.margin,
            bottom=self.bottom,
            on_new_page=self._finish_body_page,
        )

    # Pages

    def _show_page(self) -> None:
        self.pdf.showPage()
        self.page_count += 1

    def _draw_page_footer(self) -> None:
        pdf = self.pdf
        pdf.saveState()
        pdf.setStrokeColor(HexColor('#e5e7eb'))
        pdf.setLineWidth(0.6)
        rule_y = self.bottom - 18
        pdf.line(self.margin, rule_y, PAGE_WIDTH - self.margin, rule_y)
        pdf.setFillColor(HexColor(MUTED))
        safe_canvas_font(pdf, self.fonts.regular, 8.5)
        pdf.drawCentredString(PAGE_WIDTH / 2, rule_y - 14, f'{self.brand} | Page {pdf.getPageNumber()}')
        pdf.restoreState()

    def _finish_body_page(self) -> None:
        self._draw_page_footer()
        self._show_page()

    # Cover and footer

    def draw_cover(self, cover: CoverPage) -> None:
        pdf = self.pdf
        pdf.setFillColor(HexColor(DARK))
        pdf.rect(0, 0, PAGE_WIDTH, PAGE_HEIGHT, stroke=0, fill=1)
        if cover.image:
            self._draw_cover_image(cover.image, 0, 0, PAGE_WIDTH, PAGE_HEIGHT)
            dark = HexColor(DARK)
            pdf.setFillColor(Color(dark.red, dark.green, dark.blue, alpha=0.7))
            pdf.rect(0, 0, PAGE_WIDTH, PAGE_HEIGHT, stroke=0, fill=1)

        y = PAGE_HEIGHT * 0.62
        y = self._draw_centered(cover.title, y, font=self.fonts.bold, size=40, color='#ffffff')
        y = self._draw_centered(cover.subtitle, y - 18, font=self.fonts.regular, size=18, color='#ffffff')
        self._draw_centered(cover.business_name, y - 14, font=self.fonts.bold, size=30, color=ORANGE)

        pdf.setFillColor(HexColor(TEAL))
        pdf.rect(PAGE_WIDTH / 2 - 40, PAGE_HEIGHT * 0.62 + 48, 80, 3, stroke=0, fill=1)
        safe_canvas_font(pdf, self.fonts.regular, 10)
        pdf.setFillColor(HexColor(TEAL_LIGHT))
        pdf.drawCentredString(PAGE_WIDTH / 2, self.margin, self.brand)
        self._show_page()

    def draw_footer_page(self, footer: FooterPage) -> None:
        pdf = self.pdf
        disclaimer_lines = wrap_text(footer.disclaimer, self.fonts.regular, 9, min(400.0, self.content_width))
        tagline_lines = wrap_text(footer.tagline, self.fonts.regular, 12, self.content_width - 2 * BOX_PADDING)
        panel_height = 2 * 40 + 26 + len(tagline_lines) * 16 + 14 + len(disclaimer_lines) * 13

        pdf.setFillColor(HexColor(DARK))
        pdf.rect(0, 0, PAGE_WIDTH, max(panel_height, PAGE_HEIGHT * 0.35), stroke=0, fill=1)

        y = max(panel_height, PAGE_HEIGHT * 0.35) - 40
        y = self._draw_centered(footer.brand_name, y, font=self.fonts.bold, size=20, color=TEAL)
        y = self._draw_centered(footer.tagline, y - 4, font=self.fonts.regular, size=12, color=ORANGE)
        self._draw_centered(
            footer.disclaimer,
            y - 10,
            font=self.fonts.regular,
            size=9,
            color='#9ca3af',
            max_width=min(400.0, self.content_width),
        )
        self._show_page()

    def _draw_centered(
        self,
        text: str,
        top: float,
        *,
        font: str,
        size: float,
        color: str,
        max_width: float | None = None,
    ) -> float:
        """Draw wrapped, centred text below ``top``; returns the y under the last line."""
        if not text:
            return top
        line_height = size * 1.3
        y = top
        safe_canvas_font(self.pdf, font, size)
        self.pdf.setFillColor(HexColor(color))
        for line in wrap_text(text, font, size, max_width or self.content_width):
            y -= line_height
            self.pdf.drawCentredString(PAGE_WIDTH / 2, y + size * 0.25, line)
        return y

    # Sections

    def draw_section(self, prepared: PreparedSection) -> None:
        self._draw_banner(prepared)
        self.cursor.y = PAGE_HEIGHT - self.banner_height - 28

        for block in prepared.blocks:
            self._draw_block(block)

        section = prepared.section
        if section.pull_quote:
            self._draw_quote(section.pull_quote, size=15, gap=18, border=3)
        if section.statistic is not None:
            self._draw_statistic(section.statistic.value, section.statistic.description)
        if section.key_takeaways:
            self._draw_takeaways(list(section.key_takeaways))

        self._finish_body_page()
        self.cursor.y = self.cursor.top

    def _draw_banner(self, prepared: PreparedSection) -> None:
        pdf = self.pdf
        bottom = PAGE_HEIGHT - self.banner_height
        if prepared.banner:
            self._draw_cover_image(prepared.banner, 0, bottom, PAGE_WIDTH, self.banner_height)
            pdf.setFillColor(Color(0, 0, 0, alpha=0.55))
            pdf.rect(0, bottom, PAGE_WIDTH, self.banner_height, stroke=0, fill=1)
            label_color = ORANGE_LIGHT
        else:
            light = TEAL_LIGHT if prepared.accent == TEAL else ORANGE_LIGHT
            pdf.saveState()
            clip = pdf.beginPath()
            clip.rect(0, bottom, PAGE_WIDTH, self.banner_height)
            pdf.clipPath(clip, stroke=0, fill=0)
            pdf.linearGradient(
                0,
                bottom,
                PAGE_WIDTH,
                PAGE_HEIGHT,
                (HexColor(prepared.accent), HexColor(light)),
                extend=False,
            )
            pdf.restoreState()
            label_color = '#ffffff'

        title_size = 26.0
        title_lines = wrap_text(prepared.section.title, self.fonts.bold, title_size, self.content_width)
        while len(title_lines) * title_size * 1.2 + 70 > self.banner_height and title_size > 14:
            title_size -= 2
            title_lines = wrap_text(prepared.section.title, self.fonts.bold, title_size, self.content_width)

        y = bottom + 26
        pdf.setFillColor(white)
        safe_canvas_font(pdf, self.fonts.bold, title_size)
        for line in reversed(title_lines):
            pdf.drawString(self.margin, y, line)
            y += title_size * 1.2
        pdf.setFillColor(HexColor(label_color))
        safe_canvas_font(pdf, self.fonts.bold, 30)
        pdf.drawString(self.margin, y + 6, prepared.label)

    def _draw_cover_image(self, payload: bytes, x: float, y: float, width: float, height: float) -> None:
        reader = ImageReader(io.BytesIO(payload))
        image_width, image_height = reader.getSize()
        if image_width <= 0 or image_height <= 0:
            return
        scale = max(width / image_width, height / image_height)
        draw_width = image_width * scale
        draw_height = image_height * scale
        pdf = self.pdf
        pdf.saveState()
        clip = pdf.beginPath()
        clip.rect(x, y, width, height)
        pdf.clipPath(clip, stroke=0, fill=0)
        pdf.drawImage(
            reader,
            x + (width - draw_width) / 2,
            y + (height - draw_height) / 2,
            width=draw_width,
            height=draw_height,
            mask='auto',
        )
        pdf.restoreState()

    # Body blocks

    def _draw_block(self, block: Block) -> None:
        if block.kind is BlockKind.heading:
            self._draw_heading(block.text)
        elif block.kind is BlockKind.paragraph:
            self._draw_paragraph(block.text)
        elif block.kind in {BlockKind.bullet, BlockKind.numbered}:
            self._draw_list(block)
        elif block.kind is BlockKind.quote:
            self._draw_quote(block.text, size=self.body_size + 2, gap=10, border=2)

    def _draw_runs(self, line: list[TextRun], x: float, baseline: float, size: float, color: str) -> None:
        pdf = self.pdf
        for run in line:
            font = self.fonts.pick(bold=run.bold, italic=run.italic)
            width = measure(run.text, font, size)
            if run.highlight:
                pdf.setFillColor(HexColor(STAT_FILL))
                pdf.rect(x - 1, baseline - size * 0.28, width + 2, size * 1.2, stroke=0, fill=1)
                pdf.setFillColor(HexColor(TEAL))
            elif run.bold:
                pdf.setFillColor(HexColor('#111827'))
            else:
                pdf.setFillColor(HexColor(color))
            safe_canvas_font(pdf, font, size)
            pdf.drawString(x, baseline, run.text)
            x += width

    def _draw_lines(
        self,
        lines: list[list[TextRun]],
        *,
        x: float,
        size: float,
        leading: float,
        color: str,
    ) -> None:
        for line in lines:
            self.cursor.reserve(leading)
            self._draw_runs(line, x, self.cursor.y - size, size, color)
            self.cursor.advance(leading)

    def _draw_heading(self, text: str) -> None:
        size = self.body_size + 4
        leading = size * 1.35
        runs = [replace(run, bold=True) for run in parse_inline(text, highlight_stats=False)]
        lines = wrap_runs(runs, self.fonts, size, self.content_width)
        # Keep the heading with the first lines of what follows.
        self.cursor.reserve(len(lines) * leading + 6 + 2 * self.leading)
        self.cursor.advance(6)
        self._draw_lines(lines, x=self.margin, size=size, leading=leading, color=DARK)
        self.cursor.advance(4)

    def _draw_paragraph(self, text: str) -> None:
        lines = wrap_runs(parse_inline(text), self.fonts, self.body_size, self.content_width)
        self._draw_lines(lines, x=self.margin, size=self.body_size, leading=self.leading, color=INK)
        self.cursor.advance(self.body_size * 0.8)

    def _draw_list(self, block: Block) -> None:
        text_x = self.margin + LIST_INDENT
        text_width = self.content_width - LIST_INDENT
        for item in block.items:
            marker = item.label if block.kind is BlockKind.bullet else f'{item.label}.'
            lines = wrap_runs(parse_inline(item.text), self.fonts, self.body_size, text_width)
            if not lines:
                continue
            # Whole item on one page when it fits; continuation lines keep the hanging indent.
            self.cursor.reserve(len(lines) * self.leading)
            baseline = self.cursor.y - self.body_size
            self.pdf.setFillColor(HexColor(TEAL))
            safe_canvas_font(self.pdf, self.fonts.bold, self.body_size)
            self.pdf.drawString(self.margin, baseline, marker)
            self._draw_runs(lines[0], text_x, baseline, self.body_size, INK)
            self.cursor.advance(self.leading)
            self._draw_lines(lines[1:], x=text_x, size=self.body_size, leading=self.leading, color=INK)
            self.cursor.advance(self.body_size * 0.3)
        self.cursor.advance(self.body_size * 0.6)

    def _draw_quote(self, text: str, *, size: float, gap: float, border: float) -> None:
        runs = [replace(run, italic=True) for run in parse_inline(text, highlight_stats=False)]
        leading = size * 1.4
        lines = wrap_runs(runs, self.fonts, size, self.content_width - QUOTE_INDENT)
        if not lines:
            return
        self.cursor.reserve(len(lines) * leading + 2 * gap)
        self.cursor.advance(gap)
        for line in lines:
            if self.cursor.reserve(leading):
                self.cursor.advance(gap / 2)
            top = self.cursor.y
            self.pdf.setFillColor(HexColor(ORANGE))
            self.pdf.rect(self.margin, top - leading, border, leading, stroke=0, fill=1)
            self._draw_runs(line, self.margin + QUOTE_INDENT, top - size, size, ORANGE)
            self.cursor.advance(leading)
        self.cursor.advance(gap)

    def _draw_statistic(self, value: str, description: str) -> None:
        pdf = self.pdf
        value_size = 30.0
        description_size = self.body_size
        inner_width = self.content_width - 2 * BOX_PADDING
        value_lines = wrap_text(value, self.fonts.bold, value_size, inner_width)
        description_lines = wrap_text(description, self.fonts.regular, description_size, inner_width)
        height = (
            2 * BOX_PADDING
            + len(value_lines) * value_size * 1.15
            + 6
            + len(description_lines) * description_size * 1.4
        )

        self.cursor.reserve(height + 28)
        self.cursor.advance(14)
        top = self.cursor.y
        pdf.setFillColor(HexColor(STAT_FILL))
        pdf.setStrokeColor(HexColor(TEAL))
        pdf.setLineWidth(1)
        pdf.roundRect(self.margin, top - height, self.content_width, height, 8, stroke=1, fill=1)

        y = top - BOX_PADDING
        pdf.setFillColor(HexColor(TEAL))
        safe_canvas_font(pdf, self.fonts.bold, value_size)
        for line in value_lines:
            y -= value_size * 1.15
            pdf.drawCentredString(PAGE_WIDTH / 2, y + value_size * 0.2, line)
        y -= 6
        pdf.setFillColor(HexColor(INK))
        safe_canvas_font(pdf, self.fonts.regular, description_size)
        for line in description_lines:
            y -= description_size * 1.4
            pdf.drawCentredString(PAGE_WIDTH / 2, y + description_size * 0.3, line)

        self.cursor.advance(height + 14)

    def _draw_takeaways(self, takeaways: list[str]) -> None:
        pdf = self.pdf
        size = self.body_size
        leading = size * 1.45
        title_size = 15.0
        text_x = self.margin + BOX_PADDING + 18
        text_width = self.content_width - 2 * BOX_PADDING - 18
        wrapped = [wrap_runs(parse_inline(item), self.fonts, size, text_width) for item in takeaways]
        wrapped = [lines for lines in wrapped if lines]
        if not wrapped:
            return
        height = 2 * BOX_PADDING + 4 + title_size * 1.6 + sum(len(lines) * leading + 4 for lines in wrapped)

        self.cursor.reserve(height + 20)
        self.cursor.advance(10)
        if not self.cursor.fits(height):
            self._draw_takeaways_unboxed(wrapped, text_x=text_x, size=size, leading=leading)
            return

        top = self.cursor.y
        pdf.setFillColor(HexColor(TAKEAWAY_FILL))
        pdf.roundRect(self.margin, top - height, self.content_width, height, 8, stroke=0, fill=1)
        pdf.setFillColor(HexColor(ORANGE))
        pdf.rect(self.margin, top - 4, self.content_width, 4, stroke=0, fill=1)

        y = top - 4 - BOX_PADDING - title_size
        safe_canvas_font(pdf, self.fonts.bold, title_size)
        pdf.drawString(self.margin + BOX_PADDING, y, 'Key Takeaways')
        y -= title_size * 0.6

        for lines in wrapped:
            baseline = y - size * 1.1
            pdf.setFillColor(HexColor(ORANGE))
            safe_canvas_font(pdf, self.fonts.symbols, size)
            pdf.drawString(self.margin + BOX_PADDING, baseline, CHECK_GLYPH)
            for line in lines:
                self._draw_runs(line, text_x, baseline, size, INK)
                baseline -= leading
            y -= len(lines) * leading + 4

        self.cursor.advance(height + 10)

    def _draw_takeaways_unboxed(
        self,
        wrapped: list[list[list[TextRun]]],
        *,
        text_x: float,
        size: float,
        leading: float,
    ) -> None:
        self._draw_heading('Key Takeaways')
        for lines in wrapped:
            self.cursor.reserve(len(lines) * leading)
            baseline = self.cursor.y - size
            self.pdf.setFillColor(HexColor(ORANGE))
            safe_canvas_font(self.pdf, self.fonts.symbols, size)
            self.pdf.drawString(text_x - 18, baseline, CHECK_GLYPH)
            self._draw_runs(lines[0], text_x, baseline, size, INK)
            self.cursor.advance(leading)
            self._draw_lines(lines[1:], x=text_x, size=size, leading=leading, color=INK)
            self.cursor.advance(4)
