from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..config import Settings, get_settings
from ..errors import RenderError
from .blocks import Block
from .sections import ReportSection


BACKEND_NAMES = ('vector', 'raster', 'browser')

# Brand palette
TEAL = '#08b2c6'
TEAL_LIGHT = '#b5feff'
ORANGE = '#e1530a'
ORANGE_LIGHT = '#ffa947'
DARK = '#1f2937'
INK = '#374151'
MUTED = '#6b7280'
STAT_FILL = '#f0fdff'
TAKEAWAY_FILL = '#f9fafb'


@dataclass(frozen=True)
class CoverPage:
    business_name: str
    title: str
    subtitle: str
    image: bytes | None = None


@dataclass(frozen=True)
class FooterPage:
    brand_name: str
    tagline: str
    disclaimer: str


@dataclass(frozen=True)
class PreparedSection:
    """A sanitized section with its classified body and resolved banner bytes."""

    number: int
    section: ReportSection
    blocks: list[Block] = field(default_factory=list)
    banner: bytes | None = None

    @property
    def label(self) -> str:
        return f'{self.number:02d}.'

    @property
    def accent(self) -> str:
        return TEAL if self.number % 2 == 1 else ORANGE


@dataclass(frozen=True)
class ReportDocument:
    cover: CoverPage
    sections: list[PreparedSection]
    footer: FooterPage


class Renderer(ABC):
    name: str = ''

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @abstractmethod
    def render(self, document: ReportDocument) -> bytes:
        """Render the whole document and return PDF bytes."""


def get_renderer(name: str | None, settings: Settings | None = None) -> Renderer:
    resolved = settings or get_settings()
    backend = str(name or resolved.pdf_backend or 'vector').strip().lower()
    if backend == 'vector':
        from .vector import VectorRenderer

        return VectorRenderer(resolved)
    if backend == 'raster':
        from .raster import RasterRenderer

        return RasterRenderer(resolved)
    if backend == 'browser':
        from .browser import BrowserPrintRenderer

        return BrowserPrintRenderer(resolved)
    raise RenderError(f'Unknown PDF backend: {backend!r}; expected one of {", ".join(BACKEND_NAMES)}', backend=backend)
