from __future__ import annotations

import pytest

from aibrief.errors import ResourceError
from aibrief.report.blocks import TextRun
from aibrief.report.fonts import FontSet, resolve_fonts
from aibrief.report.layout import PageCursor, line_width, measure, wrap_runs, wrap_text


TEXT = (
    'Growing businesses that automate lead follow-up and reporting typically recover '
    'several hours per employee every week, which compounds into a measurable advantage.'
)


def test_wrapped_lines_fit_the_width():
    lines = wrap_text(TEXT, 'Helvetica', 11, 180)
    assert len(lines) > 1
    for line in lines:
        assert measure(line, 'Helvetica', 11) <= 180


def test_wrapping_keeps_every_word_in_order():
    lines = wrap_text(TEXT, 'Helvetica', 11, 180)
    assert ' '.join(lines).split() == TEXT.split()
    assert all(line == line.strip() for line in lines)


def test_overlong_word_is_split_by_character():
    word = 'a' * 400
    lines = wrap_text(word, 'Helvetica', 11, 100)
    assert len(lines) > 1
    assert ''.join(lines) == word
    assert all(measure(line, 'Helvetica', 11) <= 100 for line in lines)


def test_newline_forces_a_break():
    assert wrap_text('one\ntwo', 'Helvetica', 11, 500) == ['one', 'two']


def test_empty_text_has_no_lines():
    assert wrap_text('', 'Helvetica', 11, 200) == []


def test_wrap_runs_keeps_styles_and_measures_with_style_fonts():
    fonts = FontSet()
    runs = [TextRun('Bold lead', bold=True), TextRun(' then plain text')]
    lines = wrap_runs(runs, fonts, 11, 1000)

    assert lines == [[TextRun('Bold lead', bold=True), TextRun(' then plain text')]]
    expected = measure('Bold lead', 'Helvetica-Bold', 11) + measure(' then plain text', 'Helvetica', 11)
    assert line_width(lines[0], fonts, 11) == expected


def test_styled_wrap_respects_width():
    fonts = FontSet()
    runs = [TextRun(TEXT, bold=True), TextRun(' ' + TEXT, italic=True)]
    for line in wrap_runs(runs, fonts, 12, 150):
        assert line_width(line, fonts, 12) <= 150


def test_page_cursor_breaks_when_content_does_not_fit():
    breaks: list[float] = []
    cursor = PageCursor(top=800, bottom=50)
    cursor.on_new_page = lambda: breaks.append(cursor.y)

    assert cursor.reserve(100) is False
    cursor.advance(700)
    assert cursor.available == 50
    assert cursor.fits(50)

    assert cursor.reserve(100) is True
    assert breaks == [100]
    assert cursor.y == 800
    assert cursor.page_breaks == 1


def test_page_cursor_places_oversized_blocks_at_page_top():
    cursor = PageCursor(top=800, bottom=50)
    assert cursor.at_top
    assert cursor.reserve(5000) is False
    assert cursor.page_breaks == 0


def test_default_fonts_are_the_builtin_helvetica_family(settings):
    fonts = resolve_fonts(settings)
    assert fonts == FontSet()
    assert fonts.pick(bold=True, italic=True) == 'Helvetica-BoldOblique'


def test_missing_configured_font_is_a_resource_error(settings, tmp_path):
    configured = settings.model_copy(update={'pdf_font_path': tmp_path / 'missing.ttf'})
    with pytest.raises(ResourceError):
        resolve_fonts(configured)
