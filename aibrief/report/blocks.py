from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .sanitize import CANONICAL_BULLET


QUOTE_MIN_CHARS = 20
QUOTE_MAX_CHARS = 120

_HEADING_RE = re.compile(r'^\*\*(?!\*)(.+?)(?<!\*)\*\*$')
_BULLET_RE = re.compile(r'^[•*-]\s+(.*)$')
_NUMBERED_RE = re.compile(r'^(\d+)\.\s+(.*)$')
_STAT_RE = re.compile(r'(\$\d{1,3}(?:,\d{3})*(?:\.\d+)?[KMB]?|\b\d+(?:\.\d+)?%|\b\d+(?:\.\d+)?x\b)')


class BlockKind(str, Enum):
    heading = 'heading'
    bullet = 'bullet'
    numbered = 'numbered'
    quote = 'quote'
    paragraph = 'paragraph'


@dataclass(frozen=True)
class ListItem:
    label: str
    text: str


@dataclass(frozen=True)
class Block:
    kind: BlockKind
    text: str = ''
    items: tuple[ListItem, ...] = ()

    @property
    def is_list(self) -> bool:
        return self.kind in {BlockKind.bullet, BlockKind.numbered}


@dataclass(frozen=True)
class TextRun:
    text: str
    bold: bool = False
    italic: bool = False
    highlight: bool = False


def _split_candidates(text: str) -> list[list[str]]:
    candidates: list[list[str]] = []
    current: list[str] = []
    for raw_line in text.replace('\r\n', '\n').replace('\r', '\n').split('\n'):
        line = raw_line.strip()
        if not line:
            if current:
                candidates.append(current)
                current = []
            continue
        current.append(line)
    if current:
        candidates.append(current)
    return candidates


def _is_quote_candidate(lines: list[str], candidate_count: int) -> bool:
    if len(lines) != 1 or candidate_count < 2:
        return False
    line = lines[0]
    if not QUOTE_MIN_CHARS <= len(line) <= QUOTE_MAX_CHARS:
        return False
    # A lead-in to a list or a label is not a quote.
    if line.endswith(':'):
        return False
    return True


def classify(text: str, *, detect_quotes: bool = True) -> list[Block]:
    """Split section text into headings, lists, standalone quotes and paragraphs.

    Paragraph candidates are separated by blank lines. Inside a candidate, a line
    fully wrapped in ``**`` is a heading, ``•``/``-``/``*`` lines form a bullet list,
    ``N.`` lines form a numbered list (labels are kept as written), and everything
    else accumulates into a paragraph. A candidate that is a single plain line of
    QUOTE_MIN_CHARS..QUOTE_MAX_CHARS characters, in text with more than one
    candidate, becomes a quote. Inline ``**bold**`` markup is left in the payload.
    """
    candidates = _split_candidates(str(text or ''))
    blocks: list[Block] = []

    for lines in candidates:
        paragraph: list[str] = []
        list_kind: BlockKind | None = None
        list_items: list[ListItem] = []

        def _flush_paragraph() -> None:
            if paragraph:
                blocks.append(Block(kind=BlockKind.paragraph, text=' '.join(paragraph)))
                paragraph.clear()

        def _flush_list() -> None:
            nonlocal list_kind
            if list_kind is not None and list_items:
                blocks.append(Block(kind=list_kind, items=tuple(list_items)))
            list_items.clear()
            list_kind = None

        if detect_quotes and _is_quote_candidate(lines, len(candidates)):
            line = lines[0]
            if not (_HEADING_RE.match(line) or _BULLET_RE.match(line) or _NUMBERED_RE.match(line)):
                blocks.append(Block(kind=BlockKind.quote, text=line))
                continue

        for line in lines:
            heading = _HEADING_RE.match(line)
            if heading and heading.group(1).strip():
                _flush_paragraph()
                _flush_list()
                blocks.append(Block(kind=BlockKind.heading, text=heading.group(1).strip()))
                continue

            bullet = _BULLET_RE.match(line)
            if bullet and bullet.group(1).strip():
                _flush_paragraph()
                if list_kind is not BlockKind.bullet:
                    _flush_list()
                    list_kind = BlockKind.bullet
                list_items.append(ListItem(label=CANONICAL_BULLET, text=bullet.group(1).strip()))
                continue

            numbered = _NUMBERED_RE.match(line)
            if numbered and numbered.group(2).strip():
                _flush_paragraph()
                if list_kind is not BlockKind.numbered:
                    _flush_list()
                    list_kind = BlockKind.numbered
                list_items.append(ListItem(label=numbered.group(1), text=numbered.group(2).strip()))
                continue

            _flush_list()
            paragraph.append(line)

        _flush_paragraph()
        _flush_list()

    return blocks


def blocks_to_text(blocks: list[Block]) -> str:
    """Serialize blocks back to canonical markup, one block per paragraph."""
    parts: list[str] = []
    for block in blocks:
        if block.kind is BlockKind.heading:
            parts.append(f'**{block.text}**')
        elif block.kind is BlockKind.bullet:
            parts.append('\n'.join(f'{CANONICAL_BULLET} {item.text}' for item in block.items))
        elif block.kind is BlockKind.numbered:
            parts.append('\n'.join(f'{item.label}. {item.text}' for item in block.items))
        else:
            parts.append(block.text)
    return '\n\n'.join(parts)


def _split_highlights(text: str, *, bold: bool, italic: bool) -> list[TextRun]:
    runs: list[TextRun] = []
    for index, part in enumerate(_STAT_RE.split(text)):
        if not part:
            continue
        runs.append(TextRun(text=part, bold=bold, italic=italic, highlight=index % 2 == 1))
    return runs


def parse_inline(text: str, *, highlight_stats: bool = True) -> list[TextRun]:
    """Split ``**bold**`` / ``*italic*`` inline markup into styled runs.

    Unbalanced markers are kept as literal text.
    """
    source = str(text or '')
    if not source:
        return []

    runs: list[TextRun] = []
    buffer: list[str] = []
    bold = False
    italic = False
    cursor = 0

    def _flush_buffer() -> None:
        if not buffer:
            return
        chunk = ''.join(buffer)
        buffer.clear()
        if highlight_stats:
            runs.extend(_split_highlights(chunk, bold=bold, italic=italic))
        else:
            runs.append(TextRun(text=chunk, bold=bold, italic=italic))

    while cursor < len(source):
        if source.startswith('\\*', cursor):
            buffer.append('*')
            cursor += 2
            continue

        if source.startswith('**', cursor) and (bold or source.find('**', cursor + 2) != -1):
            _flush_buffer()
            bold = not bold
            cursor += 2
            continue

        if source[cursor] == '*' and (italic or source.find('*', cursor + 1) != -1):
            _flush_buffer()
            italic = not italic
            cursor += 1
            continue

        buffer.append(source[cursor])
        cursor += 1

    _flush_buffer()
    return _merge_runs(runs)


def _merge_runs(runs: list[TextRun]) -> list[TextRun]:
    merged: list[TextRun] = []
    for run in runs:
        if (
            merged
            and merged[-1].bold == run.bold
            and merged[-1].italic == run.italic
            and merged[-1].highlight == run.highlight
        ):
            previous = merged[-1]
            merged[-1] = TextRun(
                text=f'{previous.text}{run.text}',
                bold=previous.bold,
                italic=previous.italic,
                highlight=previous.highlight,
            )
            continue
        merged.append(run)
    return merged


def plain_text(text: str) -> str:
    return ''.join(run.text for run in parse_inline(text, highlight_stats=False))
