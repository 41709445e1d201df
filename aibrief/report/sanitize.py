from __future__ import annotations

import re
from typing import Any


CANONICAL_BULLET = '•'

_DECORATIVE_GLYPHS = '⭐★☆✦✧✨✩✪✫✬✭✮✯✰⋆'
# Private-use delimiters emitted around web-search citations, plus zero-width marks.
_INVISIBLE_CLASS = r'\ue200-\ue2ff\u200b-\u200d\u2060\ufeff'
_MARKER_CLASS = f'[{_DECORATIVE_GLYPHS}{_INVISIBLE_CLASS}]'

_CITE_TOKEN_RE = re.compile(
    rf'(?<![A-Za-z]){_MARKER_CLASS}*cite{_MARKER_CLASS}+'
    r'(?:[, ]*[a-z0-9_-]*(?:turn\d+(?:search|news|view|fetch|image)\d+)+[a-z0-9_-]*'
    rf'{_MARKER_CLASS}*)*',
    re.IGNORECASE,
)
_TURN_TOKEN_RE = re.compile(
    rf'\bturn\d+(?:(?:search|news|view|fetch|image)\d+)+{_MARKER_CLASS}*',
    re.IGNORECASE,
)
_NUMERIC_REF_RE = re.compile(r'\[\d+(?:\s*[,–-]\s*\d+)*\]')
_SOURCE_MARKER_RE = re.compile(r'【[^】\n]*】')
_GLYPH_RE = re.compile(f'{_MARKER_CLASS}+')

_PUNCTUATION_MAP = {
    '‘': "'",
    '’': "'",
    '‚': "'",
    '‛': "'",
    '′': "'",
    '“': '"',
    '”': '"',
    '„': '"',
    '‟': '"',
    '″': '"',
    '‐': '-',
    '‑': '-',
    '‒': '-',
    '–': '-',
    '—': '-',
    '―': '-',
    '−': '-',
    '…': '...',
    '\u00a0': ' ',
    '\u2007': ' ',
    '\u202f': ' ',
    '\u3000': ' ',
}
_PUNCTUATION_TABLE = str.maketrans(_PUNCTUATION_MAP)

_HORIZONTAL_SPACE_RE = re.compile(r'[ \t\f\v]+')
_BULLET_LINE_RE = re.compile(r'^[•●◦▪▸►‣⁃∙*-]\s+(.*)$')


def _strip_artifacts(text: str) -> str:
    # Removing one token can expose another (e.g. "ci[1]te★turn0search1"), so loop until stable.
    while True:
        cleaned = _CITE_TOKEN_RE.sub('', text)
        cleaned = _TURN_TOKEN_RE.sub('', cleaned)
        cleaned = _SOURCE_MARKER_RE.sub('', cleaned)
        cleaned = _NUMERIC_REF_RE.sub('', cleaned)
        cleaned = _GLYPH_RE.sub('', cleaned)
        if cleaned == text:
            return cleaned
        text = cleaned


def _normalize_line(line: str) -> str:
    stripped = _HORIZONTAL_SPACE_RE.sub(' ', line).strip()
    match = _BULLET_LINE_RE.match(stripped)
    if match and match.group(1):
        return f'{CANONICAL_BULLET} {match.group(1)}'
    return stripped


def sanitize(text: Any) -> str:
    """Return report text free of LLM citation artifacts, with ASCII punctuation.

    Line breaks are kept (blank-line runs collapse to a single blank line) so that
    paragraph and list structure survives for the block classifier. Calling it on
    its own output returns the same string.
    """
    if text is None:
        return ''
    value = str(text).replace('\r\n', '\n').replace('\r', '\n')
    if not value:
        return ''

    value = value.translate(_PUNCTUATION_TABLE)
    value = _strip_artifacts(value)

    lines: list[str] = []
    for raw_line in value.split('\n'):
        line = _normalize_line(raw_line)
        if not line and (not lines or not lines[-1]):
            continue
        lines.append(line)
    while lines and not lines[-1]:
        lines.pop()
    return '\n'.join(lines)


def sanitize_inline(text: Any) -> str:
    """Sanitize text that is rendered on a single line (titles, takeaways, quotes)."""
    return ' '.join(sanitize(text).split())
