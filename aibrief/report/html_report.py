from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markdown_it import MarkdownIt
from markupsafe import Markup

from .blocks import Block, BlockKind
from .images import to_data_url
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
    PreparedSection,
    ReportDocument,
)


TEMPLATE_DIR = Path(__file__).resolve().parent / 'templates'
TEMPLATE_NAME = 'report.html.j2'

PAGE_WIDTH_PX = 794
PAGE_HEIGHT_PX = 1123
BANNER_HEIGHT_PX = 320

_TAG_SPLIT_RE = re.compile(r'(<[^>]+>)')
_STAT_HTML_RE = re.compile(r'(\d+(?:\.\d+)?%|\$[\d,]+(?:\.\d+)?[KMB]?)')

PALETTE = {
    'teal': TEAL,
    'orange': ORANGE,
    'dark': DARK,
    'ink': INK,
    'muted': MUTED,
    'stat_fill': STAT_FILL,
    'takeaway_fill': TAKEAWAY_FILL,
}


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=select_autoescape(enabled_extensions=('html', 'j2')),
        trim_blocks=True,
        lstrip_blocks=True,
    )


@lru_cache(maxsize=1)
def _markdown_parser() -> MarkdownIt:
    # Raw HTML in model output is escaped, not passed through.
    return MarkdownIt('commonmark', {'html': False})


def _highlight_stats(markup: str) -> str:
    parts = _TAG_SPLIT_RE.split(markup)
    for index, part in enumerate(parts):
        if not part or part.startswith('<'):
            continue
        parts[index] = _STAT_HTML_RE.sub(r'<span class="stat-highlight">\1</span>', part)
    return ''.join(parts)


def render_inline(text: str, *, highlight: bool = True) -> Markup:
    rendered = _markdown_parser().renderInline(str(text or ''))
    if highlight:
        rendered = _highlight_stats(rendered)
    return Markup(rendered)


def _block_view(block: Block) -> dict[str, Any]:
    if block.is_list:
        return {
            'kind': block.kind.value,
            'entries': [
                {
                    'marker': item.label if block.kind is BlockKind.bullet else f'{item.label}.',
                    'html': render_inline(item.text),
                }
                for item in block.items
            ],
        }
    return {
        'kind': block.kind.value,
        'html': render_inline(block.text, highlight=block.kind is not BlockKind.heading),
    }


def _section_view(prepared: PreparedSection) -> dict[str, Any]:
    section = prepared.section
    return {
        'label': prepared.label,
        'title': section.title,
        'banner': to_data_url(prepared.banner) if prepared.banner else None,
        'accent': prepared.accent,
        'accent_light': TEAL_LIGHT if prepared.accent == TEAL else ORANGE_LIGHT,
        'blocks': [_block_view(block) for block in prepared.blocks],
        'pull_quote': section.pull_quote,
        'statistic': section.statistic,
        'key_takeaways': [render_inline(item) for item in section.key_takeaways],
    }


def build_report_html(document: ReportDocument, *, mode: str = 'print') -> str:
    """Render the whole document as one HTML page.

    ``print`` adds A4 page rules and page-break hints for a browser print
    engine; ``screen`` lays everything out as one long page for capture.
    """
    if mode not in {'print', 'screen'}:
        raise ValueError(f'Unsupported HTML mode: {mode!r}')

    template = _environment().get_template(TEMPLATE_NAME)
    return template.render(
        mode=mode,
        cover=document.cover,
        cover_image=to_data_url(document.cover.image) if document.cover.image else None,
        footer=document.footer,
        sections=[_section_view(prepared) for prepared in document.sections],
        palette=PALETTE,
        page_width=PAGE_WIDTH_PX,
        page_height=PAGE_HEIGHT_PX,
        banner_height=BANNER_HEIGHT_PX,
    )
