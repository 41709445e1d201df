from __future__ import annotations

import pytest

from aibrief.prompts import build_questions_prompt, build_report_prompt
from aibrief.report.schema import parse_questions_result
from aibrief.survey import normalize_website_url, parse_company_profile, parse_survey_input

from conftest import questions_payload


def survey_payload(**overrides):
    payload = {
        'companyInfo': {
            'companyName': 'Acme Dental',
            'websiteURL': 'acmedental.com',
            'industry': 'Healthcare',
            'employees': '11-50',
            'revenue': '$1M-$5M',
        },
        'techStack': {'crmSystem': 'HubSpot', 'aiTools': 'ChatGPT', 'biggestChallenge': 'Lead follow-up'},
        'socialMedia': {'channels': ['Facebook', 'Instagram'], 'contentTime': '5 hours'},
        'aiSummary': 'Front desk is overloaded with appointment calls.',
        'questions': [
            {'type': 'multiple_choice', 'text': 'Which tasks eat most time?', 'options': ['Calls', 'Email'], 'multiSelect': True},
            {'type': 'text', 'text': 'What would you automate first?'},
        ],
        'answers': {'0': ['Calls'], '1': 'Reminders'},
        'emailDetails': {'sendEmail': True, 'email': 'owner@acmedental.com', 'firstName': 'Sam'},
    }
    payload.update(overrides)
    return payload


@pytest.mark.parametrize(
    'value, expected',
    [
        ('acme.com', 'https://acme.com'),
        ('http://acme.co.uk/path', 'http://acme.co.uk/path'),
        ('  www.acme.io ', 'https://www.acme.io'),
        ('not a url', ''),
        ('localhost', ''),
        (None, ''),
    ],
)
def test_normalize_website_url(value, expected):
    assert normalize_website_url(value) == expected


def test_parses_a_complete_survey():
    parsed = parse_survey_input(survey_payload())

    assert parsed.ok, parsed.errors
    survey = parsed.value
    assert survey.company_name == 'Acme Dental'
    assert survey.company_info.website_url == 'https://acmedental.com'
    assert survey.social_media.channels == ('Facebook', 'Instagram')
    assert survey.questions[0].multi_select is True
    assert survey.email_details.email == 'owner@acmedental.com'


def test_payload_parses_back_to_the_same_survey():
    survey = parse_survey_input(survey_payload()).value
    assert parse_survey_input(survey.to_payload()).value == survey


def test_minimal_survey_only_needs_company_and_summary():
    parsed = parse_survey_input(
        {'companyInfo': {'companyName': 'Acme', 'industry': 'Retail'}, 'aiSummary': 'Summary.'}
    )
    assert parsed.ok
    assert parsed.value.email_details is None
    assert parsed.value.company_info.website_url == ''


@pytest.mark.parametrize(
    'overrides, expected_error',
    [
        ({'companyInfo': None}, 'companyInfo is required'),
        ({'companyInfo': {}}, 'companyInfo.companyName must be a non-empty string'),
        ({'aiSummary': '  '}, 'body.aiSummary must be a non-empty string'),
        ({'questions': [{'type': 'essay', 'text': 'x'}]}, 'questions[0].type must be one of multiple_choice, text'),
        ({'emailDetails': {'sendEmail': True}}, 'emailDetails.email is required when sendEmail is true'),
        ({'socialMedia': {'channels': 'Facebook'}}, 'socialMedia.channels must be an array of strings'),
        ({'answers': []}, 'answers must be an object'),
    ],
)
def test_reports_invalid_fields(overrides, expected_error):
    parsed = parse_survey_input(survey_payload(**overrides))
    assert not parsed.ok
    assert expected_error in parsed.errors


def test_non_object_body_is_rejected():
    assert parse_survey_input(['x']).errors == ['request body must be a JSON object']


def test_prompt_includes_company_context_and_answers():
    prompt = build_report_prompt(parse_survey_input(survey_payload()).value)

    assert 'Acme Dental' in prompt
    assert 'Current CRM: HubSpot' in prompt
    assert 'Social channels: Facebook, Instagram' in prompt
    assert 'Front desk is overloaded' in prompt
    assert '- Which tasks eat most time?: ["Calls"]' in prompt
    assert '- What would you automate first?: Reminders' in prompt


def test_company_profile_needs_no_summary_or_answers():
    parsed = parse_company_profile(
        {
            'companyInfo': {'companyName': 'Acme Dental', 'industry': 'Healthcare', 'websiteURL': 'acmedental.com'},
            'socialMedia': {'channels': ['Facebook']},
        }
    )

    assert parsed.ok, parsed.errors
    assert parsed.value.company_name == 'Acme Dental'
    assert parsed.value.company_info.website_url == 'https://acmedental.com'
    prompt = build_questions_prompt(parsed.value)
    assert 'Acme Dental' in prompt
    assert 'Social channels: Facebook' in prompt


def test_company_profile_reports_missing_company_fields():
    parsed = parse_company_profile({'companyInfo': {'companyName': ' '}})
    assert not parsed.ok
    assert 'companyInfo.companyName must be a non-empty string' in parsed.errors
    assert 'companyInfo.industry must be a non-empty string' in parsed.errors


def test_survey_profile_matches_its_company_fields():
    survey = parse_survey_input(survey_payload()).value
    assert survey.profile.company_info == survey.company_info
    assert survey.profile.tech_stack == survey.tech_stack


def test_questions_result_round_trips_to_payload():
    parsed = parse_questions_result(questions_payload())
    assert parsed.ok, parsed.errors
    assert parsed.value.to_payload() == questions_payload()


@pytest.mark.parametrize(
    'overrides, expected_error',
    [
        ({'summary': 7}, 'result.summary must be a string'),
        ({'questions': 'none'}, 'questions must be an array'),
        ({'questions': [{'type': 'text', 'text': ' ', 'options': []}]}, 'questions[0].text must be a non-empty string'),
        ({'sources': [{'title': 'x'}]}, 'sources[0].url must be a string'),
    ],
)
def test_questions_result_errors(overrides, expected_error):
    parsed = parse_questions_result(questions_payload(**overrides))
    assert not parsed.ok
    assert expected_error in parsed.errors
