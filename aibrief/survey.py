from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .types import Parsed


_DOMAIN_URL_RE = re.compile(r'^https?://[a-zA-Z0-9][a-zA-Z0-9-]*(\.[a-zA-Z0-9][a-zA-Z0-9-]*)+')
QUESTION_TYPES = ('multiple_choice', 'text')


def normalize_website_url(value: Any) -> str:
    """Prefix a scheme when missing; return '' for values that do not look like a domain."""
    text = str(value or '').strip()
    if not text:
        return ''
    if not text.startswith(('http://', 'https://')):
        text = f'https://{text}'
    if _DOMAIN_URL_RE.match(text):
        return text
    return ''


@dataclass(frozen=True)
class CompanyInfo:
    company_name: str
    industry: str
    website_url: str = ''
    employees: str | None = None
    revenue: str | None = None


@dataclass(frozen=True)
class TechStack:
    crm_system: str | None = None
    ai_tools: str | None = None
    biggest_challenge: str | None = None


@dataclass(frozen=True)
class SocialMedia:
    channels: tuple[str, ...] = ()
    content_time: str | None = None


@dataclass(frozen=True)
class CompanyProfile:
    """Company facts collected before the discovery questions."""

    company_info: CompanyInfo
    tech_stack: TechStack = field(default_factory=TechStack)
    social_media: SocialMedia = field(default_factory=SocialMedia)

    @property
    def company_name(self) -> str:
        return self.company_info.company_name


@dataclass(frozen=True)
class SurveyQuestion:
    type: str
    text: str
    options: tuple[str, ...] = ()
    multi_select: bool = False


@dataclass(frozen=True)
class EmailDetails:
    send_email: bool = False
    email: str | None = None
    first_name: str | None = None


@dataclass(frozen=True)
class SurveyInput:
    company_info: CompanyInfo
    ai_summary: str
    tech_stack: TechStack = field(default_factory=TechStack)
    social_media: SocialMedia = field(default_factory=SocialMedia)
    answers: dict[str, Any] = field(default_factory=dict)
    questions: tuple[SurveyQuestion, ...] = ()
    email_details: EmailDetails | None = None

    @property
    def company_name(self) -> str:
        return self.company_info.company_name

    @property
    def profile(self) -> CompanyProfile:
        return CompanyProfile(self.company_info, self.tech_stack, self.social_media)

    def to_payload(self) -> dict[str, Any]:
        info = self.company_info
        payload: dict[str, Any] = {
            'companyInfo': {
                'companyName': info.company_name,
                'websiteURL': info.website_url,
                'industry': info.industry,
                'employees': info.employees,
                'revenue': info.revenue,
            },
            'techStack': {
                'crmSystem': self.tech_stack.crm_system,
                'aiTools': self.tech_stack.ai_tools,
                'biggestChallenge': self.tech_stack.biggest_challenge,
            },
            'socialMedia': {
                'channels': list(self.social_media.channels),
                'contentTime': self.social_media.content_time,
            },
            'aiSummary': self.ai_summary,
            'answers': dict(self.answers),
            'questions': [
                {
                    'type': question.type,
                    'text': question.text,
                    'options': list(question.options),
                    'multiSelect': question.multi_select,
                }
                for question in self.questions
            ],
        }
        if self.email_details is not None:
            payload['emailDetails'] = {
                'sendEmail': self.email_details.send_email,
                'email': self.email_details.email,
                'firstName': self.email_details.first_name,
            }
        return payload


def _object(raw: dict[str, Any], key: str, errors: list[str], *, required: bool) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        if required:
            errors.append(f'{key} is required')
        return {}
    if not isinstance(value, dict):
        errors.append(f'{key} must be an object')
        return {}
    return value


def _optional_str(raw: dict[str, Any], key: str, path: str, errors: list[str]) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        errors.append(f'{path}.{key} must be a string')
        return None
    return value.strip() or None


def _required_str(raw: dict[str, Any], key: str, path: str, errors: list[str]) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        errors.append(f'{path}.{key} must be a non-empty string')
        return ''
    return value.strip()


def _string_list(value: Any, path: str, errors: list[str]) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        errors.append(f'{path} must be an array of strings')
        return ()
    return tuple(value)


def parse_question_items(value: Any, errors: list[str]) -> tuple[SurveyQuestion, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        errors.append('questions must be an array')
        return ()
    questions: list[SurveyQuestion] = []
    for index, item in enumerate(value):
        path = f'questions[{index}]'
        if not isinstance(item, dict):
            errors.append(f'{path} must be an object')
            continue
        kind = item.get('type')
        if kind not in QUESTION_TYPES:
            errors.append(f'{path}.type must be one of {", ".join(QUESTION_TYPES)}')
        text = item.get('text')
        if not isinstance(text, str):
            errors.append(f'{path}.text must be a string')
            text = ''
        multi_select = item.get('multiSelect', False)
        if not isinstance(multi_select, bool):
            errors.append(f'{path}.multiSelect must be a boolean')
            multi_select = False
        questions.append(
            SurveyQuestion(
                type=str(kind or ''),
                text=text,
                options=_string_list(item.get('options'), f'{path}.options', errors),
                multi_select=multi_select,
            )
        )
    return tuple(questions)


def _parse_email_details(raw: Any, errors: list[str]) -> EmailDetails | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        errors.append('emailDetails must be an object')
        return None
    send_email = raw.get('sendEmail', False)
    if not isinstance(send_email, bool):
        errors.append('emailDetails.sendEmail must be a boolean')
        send_email = False
    email = _optional_str(raw, 'email', 'emailDetails', errors)
    if send_email and not email:
        errors.append('emailDetails.email is required when sendEmail is true')
    return EmailDetails(
        send_email=send_email,
        email=email,
        first_name=_optional_str(raw, 'firstName', 'emailDetails', errors),
    )


def _parse_profile(raw: dict[str, Any], errors: list[str]) -> CompanyProfile:
    company = _object(raw, 'companyInfo', errors, required=True)
    tech = _object(raw, 'techStack', errors, required=False)
    social = _object(raw, 'socialMedia', errors, required=False)

    has_company = isinstance(raw.get('companyInfo'), dict)

    company_info = CompanyInfo(
        company_name=_required_str(company, 'companyName', 'companyInfo', errors) if has_company else '',
        industry=_required_str(company, 'industry', 'companyInfo', errors) if has_company else '',
        website_url=normalize_website_url(_optional_str(company, 'websiteURL', 'companyInfo', errors)),
        employees=_optional_str(company, 'employees', 'companyInfo', errors),
        revenue=_optional_str(company, 'revenue', 'companyInfo', errors),
    )
    tech_stack = TechStack(
        crm_system=_optional_str(tech, 'crmSystem', 'techStack', errors),
        ai_tools=_optional_str(tech, 'aiTools', 'techStack', errors),
        biggest_challenge=_optional_str(tech, 'biggestChallenge', 'techStack', errors),
    )
    social_media = SocialMedia(
        channels=_string_list(social.get('channels'), 'socialMedia.channels', errors),
        content_time=_optional_str(social, 'contentTime', 'socialMedia', errors),
    )
    return CompanyProfile(company_info, tech_stack, social_media)


def parse_company_profile(raw: Any) -> Parsed[CompanyProfile]:
    """Parse the company part of a submission, as sent before any questions exist."""
    if not isinstance(raw, dict):
        return Parsed.failure(['request body must be a JSON object'])
    errors: list[str] = []
    profile = _parse_profile(raw, errors)
    if errors:
        return Parsed.failure(errors)
    return Parsed.success(profile)


def parse_survey_input(raw: Any) -> Parsed[SurveyInput]:
    """Parse a survey submission (camelCase JSON) into a SurveyInput."""
    if not isinstance(raw, dict):
        return Parsed.failure(['request body must be a JSON object'])

    errors: list[str] = []
    profile = _parse_profile(raw, errors)

    ai_summary = _required_str(raw, 'aiSummary', 'body', errors)
    answers = raw.get('answers', {})
    if not isinstance(answers, dict):
        errors.append('answers must be an object')
        answers = {}

    questions = parse_question_items(raw.get('questions'), errors)
    email_details = _parse_email_details(raw.get('emailDetails'), errors)

    if errors:
        return Parsed.failure(errors)
    return Parsed.success(
        SurveyInput(
            company_info=profile.company_info,
            ai_summary=ai_summary,
            tech_stack=profile.tech_stack,
            social_media=profile.social_media,
            answers=dict(answers),
            questions=questions,
            email_details=email_details,
        )
    )
