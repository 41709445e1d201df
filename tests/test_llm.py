from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest
from openai import APITimeoutError, RateLimitError

from aibrief.adapters.llm import BasicLLMClient, BasicLLMConfig, ReportGenerator
from aibrief.errors import ReportError, UpstreamError, UpstreamTimeout, ValidationError
from aibrief.survey import parse_company_profile, parse_survey_input

from conftest import questions_payload, report_payload


_REQUEST = httpx.Request('POST', 'https://api.example.com/v1/responses')


def rate_limited() -> RateLimitError:
    return RateLimitError('slow down', response=httpx.Response(429, request=_REQUEST), body=None)


class FakeResponses:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(output_text=outcome)


def make_generator(outcomes, *, model='gpt-5', max_attempts=3):
    responses = FakeResponses(outcomes)
    fake_client = SimpleNamespace(responses=responses)
    cfg = BasicLLMConfig(base_url=None, api_key=None, model=model, timeout_seconds=60)
    delays: list[float] = []

    async def record_sleep(delay):
        delays.append(delay)

    generator = ReportGenerator(
        BasicLLMClient(cfg, client=fake_client),
        max_attempts=max_attempts,
        retry_base_delay_seconds=0.5,
        sleep=record_sleep,
    )
    return generator, responses, delays


@pytest.fixture
def survey():
    return parse_survey_input(
        {'companyInfo': {'companyName': 'Acme', 'industry': 'Retail'}, 'aiSummary': 'Needs help with stock.'}
    ).value


def test_generates_a_report_with_web_search_and_strict_schema(survey):
    generator, responses, delays = make_generator([json.dumps(report_payload())])

    report = asyncio.run(generator.generate_report(survey))

    assert report.quick_wins[0].title == 'AI inbox triage'
    request = responses.calls[0]
    assert request['model'] == 'gpt-5'
    assert request['tools'] == [{'type': 'web_search'}]
    assert request['text']['format']['type'] == 'json_schema'
    assert request['text']['format']['strict'] is True
    assert request['reasoning'] == {'effort': 'medium'}
    assert 'Acme' in request['input']
    assert delays == []


def test_reasoning_is_only_sent_to_reasoning_models(survey):
    generator, responses, _ = make_generator([json.dumps(report_payload())], model='gpt-4.1')
    asyncio.run(generator.generate_report(survey))
    assert 'reasoning' not in responses.calls[0]


def test_transient_failures_retry_with_linear_backoff(survey):
    generator, responses, delays = make_generator([rate_limited(), rate_limited(), json.dumps(report_payload())])

    report = asyncio.run(generator.generate_report(survey))

    assert report.executive_summary
    assert len(responses.calls) == 3
    assert delays == [0.5, 1.0]


def test_exhausted_retries_raise_a_retryable_upstream_error(survey):
    generator, _, delays = make_generator([rate_limited(), rate_limited()], max_attempts=2)

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(generator.generate_report(survey))
    assert excinfo.value.retryable is True
    assert excinfo.value.service == 'llm'
    assert delays == [0.5]


def test_timeout_is_not_retried(survey):
    generator, responses, _ = make_generator([APITimeoutError(request=_REQUEST), json.dumps(report_payload())])

    with pytest.raises(UpstreamTimeout):
        asyncio.run(generator.generate_report(survey))
    assert len(responses.calls) == 1


@pytest.mark.parametrize('output', ['', 'not json', json.dumps({'executiveSummary': 3})])
def test_malformed_output_is_a_validation_error(survey, output):
    generator, _, _ = make_generator([output])
    with pytest.raises(ValidationError):
        asyncio.run(generator.generate_report(survey))


def test_unconfigured_client_refuses_to_start():
    client = BasicLLMClient(BasicLLMConfig(base_url=None, api_key=None, model='gpt-5', timeout_seconds=60))
    assert client.configured is False
    with pytest.raises(ReportError):
        client.client()


def test_generates_discovery_questions_with_their_own_schema():
    profile = parse_company_profile(
        {'companyInfo': {'companyName': 'Acme Dental', 'industry': 'Healthcare'}, 'techStack': {'crmSystem': 'HubSpot'}}
    ).value
    generator, responses, _ = make_generator([rate_limited(), json.dumps(questions_payload())])

    result = asyncio.run(generator.generate_questions(profile))

    assert [question.type for question in result.questions] == ['multiple_choice', 'text']
    assert result.questions[0].options == ('Phone', 'Online')
    assert result.sources[0].url == 'https://example.com/dental'
    request = responses.calls[-1]
    assert request['text']['format']['name'] == 'QuestionsSchema'
    assert request['tools'] == [{'type': 'web_search'}]
    assert 'Current CRM: HubSpot' in request['input']
    assert len(responses.calls) == 2


def test_question_timeout_is_an_upstream_timeout():
    profile = parse_company_profile({'companyInfo': {'companyName': 'Acme', 'industry': 'Retail'}}).value
    generator, _, _ = make_generator([APITimeoutError(request=_REQUEST)])

    with pytest.raises(UpstreamTimeout) as excinfo:
        asyncio.run(generator.generate_questions(profile))
    assert 'question generation' in str(excinfo.value)


def test_questions_with_unknown_types_are_rejected():
    profile = parse_company_profile({'companyInfo': {'companyName': 'Acme', 'industry': 'Retail'}}).value
    bad = questions_payload(questions=[{'type': 'slider', 'text': 'Rate us', 'options': []}])
    generator, _, _ = make_generator([json.dumps(bad)])

    with pytest.raises(ValidationError):
        asyncio.run(generator.generate_questions(profile))
