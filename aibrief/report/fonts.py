from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from ..config import Settings
from ..errors import ResourceError


logger = logging.getLogger(__name__)

FONT_REGULAR_NAME = 'AIB-Body'
FONT_BOLD_NAME = 'AIB-Body-Bold'
FONT_ITALIC_NAME = 'AIB-Body-Italic'


@dataclass(frozen=True)
class FontSet:
    regular: str = 'Helvetica'
    bold: str = 'Helvetica-Bold'
    italic: str = 'Helvetica-Oblique'
    bold_italic: str = 'Helvetica-BoldOblique'
    symbols: str = 'ZapfDingbats'

    def pick(self, *, bold: bool = False, italic: bool = False) -> str:
        if bold and italic:
            return self.bold_italic
        if bold:
            return self.bold
        if italic:
            return self.italic
        return self.regular


def _register_ttf_font(font_name: str, font_path: Path) -> str:
    if font_name in pdfmetrics.getRegisteredFontNames():
        return font_name
    if not font_path.is_file():
        raise ResourceError(f'Configured PDF font not found: {font_path}', backend='vector')
    try:
        pdfmetrics.registerFont(TTFont(font_name, str(font_path)))
    except Exception as exc:
        raise ResourceError(f'Failed to register PDF font {font_path}: {exc}', backend='vector') from exc
    logger.info('Registered PDF font %s from %s', font_name, font_path)
    return font_name


def resolve_fonts(settings: Settings | None = None) -> FontSet:
    """Return the font family used by the vector backend.

    Without configured TTF paths the built-in Helvetica family is used. A
    configured regular font also stands in for any bold/italic face left unset.
    """
    if settings is None or settings.pdf_font_path is None:
        return FontSet()

    regular = _register_ttf_font(FONT_REGULAR_NAME, Path(settings.pdf_font_path))
    bold = regular
    italic = regular
    if settings.pdf_bold_font_path is not None:
        bold = _register_ttf_font(FONT_BOLD_NAME, Path(settings.pdf_bold_font_path))
    if settings.pdf_italic_font_path is not None:
        italic = _register_ttf_font(FONT_ITALIC_NAME, Path(settings.pdf_italic_font_path))
    return FontSet(regular=regular, bold=bold, italic=italic, bold_italic=bold)


def safe_canvas_font(canvas, font_name: str, size: float) -> None:
    for candidate in (str(font_name or '').strip(), 'Helvetica'):
        if not candidate:
            continue
        try:
            canvas.setFont(candidate, size)
            return
        except KeyError:
            continue
