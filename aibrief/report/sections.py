from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from ..errors import ValidationError
from ..types import Parsed
from .schema import ReportResult


logger = logging.getLogger(__name__)

ROADMAP_STATISTIC_VALUE = '300%'
ROADMAP_STATISTIC_DESCRIPTION = 'Average ROI from AI implementation'
COMPETITIVE_PULL_QUOTE = 'The businesses that adopt AI now will dominate their markets in the next 2-3 years'

_FIELD_ALIASES = {
    'title': ('title',),
    'main_content': ('mainContent', 'main_content'),
    'image_url': ('imageUrl', 'image_url'),
    'image_prompt': ('imagePrompt', 'image_prompt'),
    'pull_quote': ('pullQuote', 'pull_quote'),
    'statistic': ('statistic',),
    'key_takeaways': ('keyTakeaways', 'key_takeaways'),
}


@dataclass(frozen=True)
class Statistic:
    value: str
    description: str


@dataclass(frozen=True)
class ReportSection:
    title: str
    main_content: str = ''
    image_url: str | None = None
    image_prompt: str | None = None
    pull_quote: str | None = None
    statistic: Statistic | None = None
    key_takeaways: tuple[str, ...] = ()

    def with_image(self, image_url: str | None) -> 'ReportSection':
        return replace(self, image_url=image_url)


def _lookup(raw: dict[str, Any], field_name: str) -> Any:
    for key in _FIELD_ALIASES[field_name]:
        if key in raw:
            return raw[key]
    return None


def _optional_text(raw: dict[str, Any], field_name: str, path: str, errors: list[str]) -> str | None:
    value = _lookup(raw, field_name)
    if value is None:
        return None
    if not isinstance(value, str):
        errors.append(f'{path}.{_FIELD_ALIASES[field_name][0]} must be a string')
        return None
    return value if value.strip() else None


def parse_section(raw: Any, index: int = 0) -> Parsed[ReportSection]:
    """Parse one section object from JSON, collecting every field problem."""
    path = f'sections[{index}]'
    if not isinstance(raw, dict):
        return Parsed.failure([f'{path} must be an object'])

    errors: list[str] = []

    title = _lookup(raw, 'title')
    if not isinstance(title, str):
        errors.append(f'{path}.title must be a string')
        title = ''
    elif not title.strip():
        errors.append(f'{path}.title must not be empty')

    main_content = _lookup(raw, 'main_content')
    if main_content is None:
        main_content = ''
    elif not isinstance(main_content, str):
        errors.append(f'{path}.mainContent must be a string')
        main_content = ''

    image_url = _optional_text(raw, 'image_url', path, errors)
    image_prompt = _optional_text(raw, 'image_prompt', path, errors)
    pull_quote = _optional_text(raw, 'pull_quote', path, errors)

    statistic: Statistic | None = None
    raw_statistic = _lookup(raw, 'statistic')
    if raw_statistic is not None:
        if not isinstance(raw_statistic, dict):
            errors.append(f'{path}.statistic must be an object with value and description')
        else:
            stat_value = raw_statistic.get('value')
            stat_description = raw_statistic.get('description')
            if isinstance(stat_value, (int, float)) and not isinstance(stat_value, bool):
                stat_value = str(stat_value)
            if not isinstance(stat_value, str) or not stat_value.strip():
                errors.append(f'{path}.statistic.value must be a non-empty string')
            if not isinstance(stat_description, str) or not stat_description.strip():
                errors.append(f'{path}.statistic.description must be a non-empty string')
            if isinstance(stat_value, str) and isinstance(stat_description, str):
                statistic = Statistic(value=stat_value, description=stat_description)

    takeaways: list[str] = []
    raw_takeaways = _lookup(raw, 'key_takeaways')
    if raw_takeaways is not None:
        if not isinstance(raw_takeaways, list):
            errors.append(f'{path}.keyTakeaways must be an array of strings')
        else:
            for item_index, item in enumerate(raw_takeaways):
                if not isinstance(item, str):
                    errors.append(f'{path}.keyTakeaways[{item_index}] must be a string')
                    continue
                if item.strip():
                    takeaways.append(item)

    if errors:
        return Parsed.failure(errors)
    return Parsed.success(
        ReportSection(
            title=title,
            main_content=main_content,
            image_url=image_url,
            image_prompt=image_prompt,
            pull_quote=pull_quote,
            statistic=statistic,
            key_takeaways=tuple(takeaways),
        )
    )


def _duplicate_title_errors(titles: list[str]) -> list[str]:
    errors: list[str] = []
    seen: dict[str, int] = {}
    for index, title in enumerate(titles):
        key = title.strip().casefold()
        if not key:
            continue
        if key in seen:
            errors.append(f'sections[{index}].title duplicates sections[{seen[key]}].title: {title.strip()!r}')
            continue
        seen[key] = index
    return errors


def parse_sections(raw: Any) -> Parsed[list[ReportSection]]:
    if not isinstance(raw, list):
        return Parsed.failure(['sections must be an array'])

    errors: list[str] = []
    sections: list[ReportSection] = []
    for index, item in enumerate(raw):
        parsed = parse_section(item, index)
        if not parsed.ok:
            errors.extend(parsed.errors)
            continue
        sections.append(parsed.value)

    errors.extend(_duplicate_title_errors([section.title for section in sections]))
    if errors:
        return Parsed.failure(errors)
    return Parsed.success(sections)


def check_sections(sections: list[ReportSection]) -> None:
    """Reject structurally invalid typed sections before any rendering starts."""
    errors: list[str] = []
    for index, section in enumerate(sections):
        if not isinstance(section, ReportSection):
            errors.append(f'sections[{index}] is not a ReportSection')
            continue
        if not str(section.title or '').strip():
            errors.append(f'sections[{index}].title must not be empty')
        if section.statistic is not None:
            if not str(section.statistic.value or '').strip():
                errors.append(f'sections[{index}].statistic.value must not be empty')
            if not str(section.statistic.description or '').strip():
                errors.append(f'sections[{index}].statistic.description must not be empty')
    errors.extend(
        _duplicate_title_errors([s.title for s in sections if isinstance(s, ReportSection)])
    )
    if errors:
        raise ValidationError('Invalid report sections: ' + '; '.join(errors), errors)


def section_to_payload(section: ReportSection) -> dict[str, Any]:
    payload: dict[str, Any] = {
        'title': section.title,
        'mainContent': section.main_content,
    }
    if section.image_url:
        payload['imageUrl'] = section.image_url
    if section.image_prompt:
        payload['imagePrompt'] = section.image_prompt
    if section.pull_quote:
        payload['pullQuote'] = section.pull_quote
    if section.statistic is not None:
        payload['statistic'] = {
            'value': section.statistic.value,
            'description': section.statistic.description,
        }
    if section.key_takeaways:
        payload['keyTakeaways'] = list(section.key_takeaways)
    return payload


def transform_report_to_sections(report: ReportResult) -> list[ReportSection]:
    """Map an LLM report onto the ordered list of rendered sections."""
    sections = [
        ReportSection(
            title='Executive Summary',
            main_content=report.executive_summary,
            key_takeaways=(
                'AI implementation aligned with your existing platform',
                'Immediate ROI through automation and efficiency gains',
                'Competitive advantage through early AI adoption',
            ),
            image_prompt='Professional business executive reviewing AI analytics dashboard',
        )
    ]

    if report.quick_wins:
        sections.append(
            ReportSection(
                title='Quick Wins - 30 Day Implementation',
                main_content='\n\n'.join(
                    f'**{index}. {win.title}**\n{win.description}\n\n'
                    f'*Timeframe: {win.timeframe} | Impact: {win.impact}*'
                    for index, win in enumerate(report.quick_wins, start=1)
                ),
                key_takeaways=tuple(win.title for win in report.quick_wins if win.title.strip()),
                image_prompt='Team celebrating quick wins and achievements with charts',
            )
        )

    if report.recommendations:
        sections.append(
            ReportSection(
                title='Strategic AI Roadmap',
                main_content='\n\n'.join(
                    f'**{index}. {rec.title}**\n{rec.description}\n\n*Expected ROI: {rec.roi}*'
                    for index, rec in enumerate(report.recommendations, start=1)
                ),
                key_takeaways=tuple(f'{rec.title}: {rec.roi}' for rec in report.recommendations),
                statistic=Statistic(
                    value=ROADMAP_STATISTIC_VALUE,
                    description=ROADMAP_STATISTIC_DESCRIPTION,
                ),
                image_prompt='Strategic roadmap with AI integration milestones and timeline',
            )
        )

    if report.competitive_analysis.strip():
        sections.append(
            ReportSection(
                title='Competitive Intelligence',
                main_content=report.competitive_analysis,
                pull_quote=COMPETITIVE_PULL_QUOTE,
                image_prompt='Competitive analysis dashboard showing market positioning',
            )
        )

    if report.next_steps:
        sections.append(
            ReportSection(
                title='Your Implementation Roadmap',
                main_content='\n'.join(
                    f'{index}. {step}' for index, step in enumerate(report.next_steps, start=1)
                ),
                key_takeaways=(
                    'Start with your core platform setup',
                    'Implement quick wins first for immediate ROI',
                    'Scale gradually based on results',
                ),
                image_prompt='Implementation roadmap with clear action steps and timeline',
            )
        )

    logger.info('Mapped report onto %s sections', len(sections))
    return sections
