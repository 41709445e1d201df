from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Callable

from reportlab.pdfbase import pdfmetrics

from .blocks import TextRun
from .fonts import FontSet


_TOKEN_RE = re.compile(r'\s+|\S+')


def measure(text: str, font: str, size: float) -> float:
    value = str(text or '')
    if not value:
        return 0.0
    return float(pdfmetrics.stringWidth(value, font, max(1.0, float(size))))


def _split_token_by_width(token: str, *, font: str, size: float, max_width: float) -> list[str]:
    chunks: list[str] = []
    current = ''
    for char in token:
        candidate = f'{current}{char}'
        if measure(candidate, font, size) <= max_width:
            current = candidate
            continue
        if current:
            chunks.append(current)
        current = char
    if current:
        chunks.append(current)
    return chunks


def wrap_text(text: str, font: str, size: float, max_width: float) -> list[str]:
    """Greedy word wrap of plain text; embedded newlines force a break."""
    lines = wrap_runs([TextRun(text=str(text or ''))], FontSet(regular=font), size, max_width)
    return [''.join(run.text for run in line) for line in lines]


def line_width(line: list[TextRun], fonts: FontSet, size: float) -> float:
    return sum(measure(run.text, fonts.pick(bold=run.bold, italic=run.italic), size) for run in line)


def _tokenize(runs: list[TextRun]) -> list[TextRun]:
    tokens: list[TextRun] = []
    for run in runs:
        for part in _TOKEN_RE.findall(run.text.replace('\n', ' \n ')):
            if '\n' in part:
                tokens.append(replace(run, text='\n'))
                continue
            tokens.append(replace(run, text=' ' if part.isspace() else part))
    return tokens


def wrap_runs(runs: list[TextRun], fonts: FontSet, size: float, max_width: float) -> list[list[TextRun]]:
    """Wrap styled runs greedily into lines no wider than ``max_width``.

    Words wider than a whole line are split by character. Leading and trailing
    spaces are dropped from every line. ``max_width`` must be at least one glyph
    wide.
    """
    wrapped: list[list[TextRun]] = []
    current: list[TextRun] = []
    current_width = 0.0

    def _flush() -> None:
        nonlocal current, current_width
        while current and current[-1].text.isspace():
            current.pop()
        if current:
            wrapped.append(_coalesce(current))
        current = []
        current_width = 0.0

    for token in _tokenize(runs):
        if token.text == '\n':
            _flush()
            continue
        if token.text.isspace() and not current:
            continue

        font = fonts.pick(bold=token.bold, italic=token.italic)
        token_width = measure(token.text, font, size)

        if current and current_width + token_width > max_width:
            _flush()
            if token.text.isspace():
                continue

        if token_width <= max_width:
            current.append(token)
            current_width += token_width
            continue

        for chunk in _split_token_by_width(token.text, font=font, size=size, max_width=max_width):
            chunk_width = measure(chunk, font, size)
            if current and current_width + chunk_width > max_width:
                _flush()
            current.append(replace(token, text=chunk))
            current_width += chunk_width

    _flush()
    return wrapped


def _coalesce(line: list[TextRun]) -> list[TextRun]:
    merged: list[TextRun] = []
    for run in line:
        if merged and (merged[-1].bold, merged[-1].italic, merged[-1].highlight) == (
            run.bold,
            run.italic,
            run.highlight,
        ):
            merged[-1] = replace(merged[-1], text=merged[-1].text + run.text)
            continue
        merged.append(run)
    return merged


@dataclass
class PageCursor:
    """Vertical position on the current page, in points from the page bottom."""

    top: float
    bottom: float
    on_new_page: Callable[[], None] | None = None
    y: float = field(init=False)
    page_breaks: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self.y = self.top

    @property
    def available(self) -> float:
        return self.y - self.bottom

    @property
    def at_top(self) -> bool:
        return self.y >= self.top

    def fits(self, height: float) -> bool:
        return height <= self.available

    def new_page(self) -> None:
        if self.on_new_page is not None:
            self.on_new_page()
        self.page_breaks += 1
        self.y = self.top

    def reserve(self, height: float) -> bool:
        """Break the page when ``height`` does not fit below the cursor.

        Blocks taller than a full page are placed at the top of a fresh page
        and allowed to run on. Returns True when a page break happened.
        """
        if self.fits(height) or self.at_top:
            return False
        self.new_page()
        return True

    def advance(self, height: float) -> None:
        self.y -= height
