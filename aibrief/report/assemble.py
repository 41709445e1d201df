from __future__ import annotations

import io
import logging
from dataclasses import replace

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ..config import Settings, get_settings
from ..errors import RenderError, ResourceError
from .blocks import classify
from .images import ImageLoader
from .renderer import CoverPage, FooterPage, PreparedSection, Renderer, ReportDocument, get_renderer
from .sanitize import sanitize, sanitize_inline
from .sections import ReportSection, Statistic, check_sections


logger = logging.getLogger(__name__)

PDF_MAGIC = b'%PDF-'


def default_cover(business_name: str, settings: Settings | None = None) -> CoverPage:
    resolved = settings or get_settings()
    return CoverPage(
        business_name=str(business_name or '').strip() or 'Your Business',
        title=resolved.cover_title,
        subtitle=resolved.cover_subtitle,
    )


def default_footer(settings: Settings | None = None) -> FooterPage:
    resolved = settings or get_settings()
    return FooterPage(
        brand_name=resolved.brand_name,
        tagline=resolved.brand_tagline,
        disclaimer=resolved.disclaimer,
    )


def _clean_section(section: ReportSection) -> ReportSection:
    statistic = None
    if section.statistic is not None:
        statistic = Statistic(
            value=sanitize_inline(section.statistic.value),
            description=sanitize_inline(section.statistic.description),
        )
    takeaways = tuple(item for item in (sanitize_inline(raw) for raw in section.key_takeaways) if item)
    return replace(
        section,
        title=sanitize_inline(section.title),
        main_content=sanitize(section.main_content),
        pull_quote=sanitize_inline(section.pull_quote) or None,
        statistic=statistic,
        key_takeaways=takeaways,
    )


def _ensure_pdf(payload: bytes | None, backend: str) -> bytes:
    if not payload:
        raise RenderError('Renderer returned an empty document', backend=backend)
    if not payload.startswith(PDF_MAGIC):
        raise RenderError('Renderer output is not a PDF document', backend=backend)
    try:
        page_count = len(PdfReader(io.BytesIO(payload)).pages)
    except (PdfReadError, ValueError, KeyError) as exc:
        raise RenderError(f'Renderer produced an unreadable PDF: {exc}', backend=backend) from exc
    if page_count < 1:
        raise RenderError('Renderer produced a PDF without pages', backend=backend)
    return payload


def _render_with_fallback(document: ReportDocument, renderer: Renderer, settings: Settings) -> tuple[bytes, str]:
    try:
        return renderer.render(document), renderer.name
    except ResourceError as exc:
        fallback = str(settings.pdf_fallback_backend or '').strip().lower()
        if not fallback or fallback == renderer.name:
            raise
        logger.warning('%s backend unavailable (%s); rendering with %s', renderer.name, exc, fallback)
        fallback_renderer = get_renderer(fallback, settings)
        return fallback_renderer.render(document), fallback_renderer.name


def assemble(
    cover: CoverPage,
    sections: list[ReportSection],
    footer: FooterPage,
    backend: str | Renderer | None = None,
    *,
    settings: Settings | None = None,
    image_loader: ImageLoader | None = None,
) -> bytes:
    """Render cover, sections (in order) and footer into one PDF.

    Invalid sections are rejected before anything is drawn. Banner images that
    cannot be loaded become placeholders. The result is always a readable PDF
    with at least one page, otherwise RenderError is raised.
    """
    resolved = settings or get_settings()
    sections = list(sections or [])
    check_sections(sections)
    cleaned = [_clean_section(section) for section in sections]
    # Sanitizing can empty or collide titles that were valid before.
    check_sections(cleaned)

    cover = replace(
        cover,
        business_name=sanitize_inline(cover.business_name) or 'Your Business',
        title=sanitize_inline(cover.title),
        subtitle=sanitize_inline(cover.subtitle),
    )
    footer = replace(
        footer,
        brand_name=sanitize_inline(footer.brand_name),
        tagline=sanitize_inline(footer.tagline),
        disclaimer=sanitize_inline(footer.disclaimer),
    )

    loader = image_loader or ImageLoader(timeout=resolved.image_fetch_timeout_seconds)
    try:
        if cover.image is None and resolved.cover_image_url:
            cover = replace(cover, image=loader.load(resolved.cover_image_url))
        prepared = [
            PreparedSection(
                number=index,
                section=section,
                blocks=classify(section.main_content),
                banner=loader.load(section.image_url),
            )
            for index, section in enumerate(cleaned, start=1)
        ]
    finally:
        if image_loader is None:
            loader.close()

    document = ReportDocument(cover=cover, sections=prepared, footer=footer)
    renderer = backend if isinstance(backend, Renderer) else get_renderer(backend, resolved)
    payload, used_backend = _render_with_fallback(document, renderer, resolved)
    payload = _ensure_pdf(payload, used_backend)
    logger.info(
        'Assembled %s PDF for %s: %s sections, %s bytes',
        used_backend,
        cover.business_name,
        len(prepared),
        len(payload),
    )
    return payload


def render_report_pdf(
    sections: list[ReportSection],
    business_name: str,
    backend: str | None = None,
    *,
    settings: Settings | None = None,
    image_loader: ImageLoader | None = None,
) -> bytes:
    resolved = settings or get_settings()
    return assemble(
        default_cover(business_name, resolved),
        sections,
        default_footer(resolved),
        backend,
        settings=resolved,
        image_loader=image_loader,
    )
