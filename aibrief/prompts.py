from __future__ import annotations

import json

from .survey import CompanyProfile, SurveyInput


QUESTIONS_SYSTEM_PROMPT = """You are an AI Transformation Consultant analyzing a business for AI opportunities.
ALWAYS research with the built-in web_search tool before answering:
1) The company itself (its website and name).
2) AI adoption in its industry and among its competitors.
3) AI tools relevant to its tech stack and its stated challenge.
Prefer reputable sources from the last 180 days.
Return JSON EXACTLY matching the provided json_schema and put every link in "sources".

Task: write a short summary of the business and 8-10 discovery questions.
- Tailor each question to the company's industry, size and challenges.
- Mix "multiple_choice" questions (2-6 options) with "text" questions (options = []).
"""

REPORT_SYSTEM_PROMPT = """You are an AI Transformation Consultant.
ALWAYS ground outputs with the built-in web_search tool before finalizing.
Rules:
1) Perform one or more web_search calls covering diverse, reputable domains. Prefer sources from the last 180 days.
2) Synthesize findings. Do not reveal your chain-of-thought.
3) Return structured JSON EXACTLY matching the provided json_schema.
4) Populate "sources" with 3-8 deduplicated citations (title + url), ordered by relevance. If the tool returns no results, set sources to [] and proceed conservatively.
5) No inline citations in text fields; put all links in "sources".
6) If information conflicts, note uncertainty briefly in the relevant field.

Task: Create a concise, actionable AI Opportunities Report.
Sections:
- executiveSummary: 4-8 sentences, business tone.
- quickWins: 2-4 items; each has title, description, timeframe (e.g. "2-4 weeks"), impact.
- recommendations: 2-4 items; each has an ROI note.
- competitiveAnalysis: reference industry and competitor patterns seen via web_search.
- nextSteps: 3-5 concrete steps.
Keep it scoped to the company's size and stack.
"""


def _line(label: str, value: object) -> str:
    text = str(value or '').strip()
    return f'{label}: {text or "Not provided"}'


def _profile_lines(profile: CompanyProfile) -> list[str]:
    info = profile.company_info
    tech = profile.tech_stack
    social = profile.social_media
    return [
        _line('Company', info.company_name),
        _line('Website', info.website_url),
        _line('Industry', info.industry),
        _line('Employees', info.employees),
        _line('Revenue', info.revenue),
        _line('Current CRM', tech.crm_system or 'None'),
        _line('AI tools in use', tech.ai_tools),
        _line('Biggest challenge', tech.biggest_challenge),
        _line('Social channels', ', '.join(social.channels)),
        _line('Weekly content time', social.content_time),
    ]


def build_questions_prompt(profile: CompanyProfile) -> str:
    name = profile.company_name or 'this company'
    lines = [
        f'Research {name} on the web, then write discovery questions for it.',
        '',
        *_profile_lines(profile),
        '',
        'Cover its business model, the biggest challenge above, CRM integrations and content work.',
    ]
    return '\n'.join(lines)


def build_report_prompt(survey: SurveyInput) -> str:
    lines = [
        f'Create a personalized AI Opportunities Report for {survey.company_name or "this company"}.',
        '',
        *_profile_lines(survey.profile),
        '',
        'Discovery summary:',
        survey.ai_summary,
    ]

    if survey.answers:
        question_text = {str(index): question.text for index, question in enumerate(survey.questions)}
        lines.extend(['', 'Survey answers:'])
        for key, answer in survey.answers.items():
            label = question_text.get(str(key), str(key))
            value = answer if isinstance(answer, str) else json.dumps(answer, ensure_ascii=False)
            lines.append(f'- {label}: {value}')

    return '\n'.join(lines)
