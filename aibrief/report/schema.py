from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..survey import SurveyQuestion, parse_question_items
from ..types import Parsed


@dataclass(frozen=True)
class QuickWin:
    title: str
    description: str
    timeframe: str
    impact: str


@dataclass(frozen=True)
class Recommendation:
    title: str
    description: str
    roi: str


@dataclass(frozen=True)
class Source:
    title: str
    url: str


@dataclass(frozen=True)
class ReportResult:
    executive_summary: str
    quick_wins: tuple[QuickWin, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()
    competitive_analysis: str = ''
    next_steps: tuple[str, ...] = ()
    sources: tuple[Source, ...] = field(default=())

    def to_payload(self) -> dict[str, Any]:
        return {
            'executiveSummary': self.executive_summary,
            'quickWins': [
                {
                    'title': win.title,
                    'description': win.description,
                    'timeframe': win.timeframe,
                    'impact': win.impact,
                }
                for win in self.quick_wins
            ],
            'recommendations': [
                {'title': rec.title, 'description': rec.description, 'roi': rec.roi}
                for rec in self.recommendations
            ],
            'competitiveAnalysis': self.competitive_analysis,
            'nextSteps': list(self.next_steps),
            'sources': [{'title': src.title, 'url': src.url} for src in self.sources],
        }


def _source_schema() -> dict[str, Any]:
    return {
        'type': 'object',
        'required': ['title', 'url'],
        'additionalProperties': False,
        'properties': {
            'title': {'type': 'string'},
            'url': {'type': 'string'},
        },
    }


REPORT_JSON_SCHEMA: dict[str, Any] = {
    'name': 'ReportSchema',
    'schema': {
        'type': 'object',
        'additionalProperties': False,
        'required': [
            'executiveSummary',
            'quickWins',
            'recommendations',
            'competitiveAnalysis',
            'nextSteps',
            'sources',
        ],
        'properties': {
            'executiveSummary': {'type': 'string'},
            'quickWins': {
                'type': 'array',
                'minItems': 2,
                'items': {
                    'type': 'object',
                    'required': ['title', 'description', 'timeframe', 'impact'],
                    'additionalProperties': False,
                    'properties': {
                        'title': {'type': 'string'},
                        'description': {'type': 'string'},
                        'timeframe': {'type': 'string'},
                        'impact': {'type': 'string'},
                    },
                },
            },
            'recommendations': {
                'type': 'array',
                'minItems': 2,
                'items': {
                    'type': 'object',
                    'required': ['title', 'description', 'roi'],
                    'additionalProperties': False,
                    'properties': {
                        'title': {'type': 'string'},
                        'description': {'type': 'string'},
                        'roi': {'type': 'string'},
                    },
                },
            },
            'competitiveAnalysis': {'type': 'string'},
            'nextSteps': {
                'type': 'array',
                'minItems': 3,
                'maxItems': 5,
                'items': {'type': 'string'},
            },
            'sources': {
                'type': 'array',
                'minItems': 3,
                'items': _source_schema(),
            },
        },
    },
}


@dataclass(frozen=True)
class QuestionsResult:
    summary: str
    questions: tuple[SurveyQuestion, ...] = ()
    sources: tuple[Source, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            'summary': self.summary,
            'questions': [
                {'type': question.type, 'text': question.text, 'options': list(question.options)}
                for question in self.questions
            ],
            'sources': [{'title': src.title, 'url': src.url} for src in self.sources],
        }


QUESTIONS_JSON_SCHEMA: dict[str, Any] = {
    'name': 'QuestionsSchema',
    'schema': {
        'type': 'object',
        'additionalProperties': False,
        'required': ['summary', 'questions', 'sources'],
        'properties': {
            'summary': {'type': 'string'},
            'questions': {
                'type': 'array',
                'minItems': 5,
                'items': {
                    'type': 'object',
                    'additionalProperties': False,
                    'required': ['type', 'text', 'options'],
                    'properties': {
                        'type': {'type': 'string', 'enum': ['multiple_choice', 'text']},
                        'text': {'type': 'string'},
                        'options': {'type': 'array', 'items': {'type': 'string'}},
                    },
                },
            },
            'sources': {
                'type': 'array',
                'minItems': 3,
                'items': _source_schema(),
            },
        },
    },
}

def _string_field(raw: dict[str, Any], key: str, path: str, errors: list[str]) -> str:
    value = raw.get(key)
    if not isinstance(value, str):
        errors.append(f'{path}.{key} must be a string')
        return ''
    return value


def _object_list(raw: dict[str, Any], key: str, errors: list[str]) -> list[dict[str, Any]]:
    value = raw.get(key, [])
    if not isinstance(value, list):
        errors.append(f'{key} must be an array')
        return []
    items: list[dict[str, Any]] = []
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            errors.append(f'{key}[{index}] must be an object')
            continue
        items.append(item)
    return items


def parse_report_result(raw: Any) -> Parsed[ReportResult]:
    """Check the structural shape of an LLM report payload.

    Minimum item counts from the JSON schema are advisory for the model and are
    not enforced here.
    """
    if not isinstance(raw, dict):
        return Parsed.failure(['report must be a JSON object'])

    errors: list[str] = []
    executive_summary = _string_field(raw, 'executiveSummary', 'report', errors)

    competitive = raw.get('competitiveAnalysis', '')
    if not isinstance(competitive, str):
        errors.append('report.competitiveAnalysis must be a string')
        competitive = ''

    quick_wins = tuple(
        QuickWin(
            title=_string_field(item, 'title', f'quickWins[{index}]', errors),
            description=_string_field(item, 'description', f'quickWins[{index}]', errors),
            timeframe=_string_field(item, 'timeframe', f'quickWins[{index}]', errors),
            impact=_string_field(item, 'impact', f'quickWins[{index}]', errors),
        )
        for index, item in enumerate(_object_list(raw, 'quickWins', errors))
    )
    recommendations = tuple(
        Recommendation(
            title=_string_field(item, 'title', f'recommendations[{index}]', errors),
            description=_string_field(item, 'description', f'recommendations[{index}]', errors),
            roi=_string_field(item, 'roi', f'recommendations[{index}]', errors),
        )
        for index, item in enumerate(_object_list(raw, 'recommendations', errors))
    )
    sources = tuple(
        Source(
            title=_string_field(item, 'title', f'sources[{index}]', errors),
            url=_string_field(item, 'url', f'sources[{index}]', errors),
        )
        for index, item in enumerate(_object_list(raw, 'sources', errors))
    )

    raw_steps = raw.get('nextSteps', [])
    next_steps: list[str] = []
    if not isinstance(raw_steps, list):
        errors.append('nextSteps must be an array')
    else:
        for index, step in enumerate(raw_steps):
            if not isinstance(step, str):
                errors.append(f'nextSteps[{index}] must be a string')
                continue
            next_steps.append(step)

    if errors:
        return Parsed.failure(errors)
    return Parsed.success(
        ReportResult(
            executive_summary=executive_summary,
            quick_wins=quick_wins,
            recommendations=recommendations,
            competitive_analysis=competitive,
            next_steps=tuple(next_steps),
            sources=sources,
        )
    )


def parse_questions_result(raw: Any) -> Parsed[QuestionsResult]:
    if not isinstance(raw, dict):
        return Parsed.failure(['questions result must be a JSON object'])

    errors: list[str] = []
    summary = _string_field(raw, 'summary', 'result', errors)
    if 'questions' not in raw:
        errors.append('questions is required')
    questions = parse_question_items(raw.get('questions'), errors)
    for index, question in enumerate(questions):
        if not question.text.strip():
            errors.append(f'questions[{index}].text must be a non-empty string')
    sources = tuple(
        Source(
            title=_string_field(item, 'title', f'sources[{index}]', errors),
            url=_string_field(item, 'url', f'sources[{index}]', errors),
        )
        for index, item in enumerate(_object_list(raw, 'sources', errors))
    )

    if errors:
        return Parsed.failure(errors)
    return Parsed.success(QuestionsResult(summary=summary, questions=questions, sources=sources))
