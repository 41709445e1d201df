from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)

from ..config import Settings
from ..errors import ReportError, UpstreamError, UpstreamTimeout, ValidationError
from ..prompts import QUESTIONS_SYSTEM_PROMPT, REPORT_SYSTEM_PROMPT, build_questions_prompt, build_report_prompt
from ..report.schema import (
    QUESTIONS_JSON_SCHEMA,
    REPORT_JSON_SCHEMA,
    QuestionsResult,
    ReportResult,
    parse_questions_result,
    parse_report_result,
)
from ..survey import CompanyProfile, SurveyInput


logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (RateLimitError, InternalServerError, APIConnectionError)


@dataclass
class BasicLLMConfig:
    base_url: str | None
    api_key: str | None
    model: str
    timeout_seconds: int


class BasicLLMClient:
    """Lazily constructed AsyncOpenAI client."""

    def __init__(self, cfg: BasicLLMConfig, client: AsyncOpenAI | None = None):
        self.cfg = cfg
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.cfg.api_key)

    def client(self) -> AsyncOpenAI:
        if not self.configured:
            raise ReportError('LLM client is not configured; set OPENAI_API_KEY')
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.cfg.api_key,
                base_url=self.cfg.base_url,
                timeout=max(30, int(self.cfg.timeout_seconds)),
                max_retries=0,
            )
        return self._client


def _extract_json(response: Any) -> Any:
    text = str(getattr(response, 'output_text', '') or '').strip()
    if not text:
        raise ValidationError('LLM response contained no output text')
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f'LLM response is not valid JSON: {exc}') from exc


class ReportGenerator:
    def __init__(
        self,
        client: BasicLLMClient,
        *,
        max_attempts: int = 3,
        retry_base_delay_seconds: float = 0.5,
        reasoning_effort: str | None = 'medium',
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.max_attempts = max(1, int(max_attempts))
        self.retry_base_delay_seconds = max(0.0, float(retry_base_delay_seconds))
        self.reasoning_effort = reasoning_effort
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> 'ReportGenerator':
        cfg = BasicLLMConfig(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            model=settings.report_model,
            timeout_seconds=settings.llm_timeout_seconds,
        )
        return cls(
            BasicLLMClient(cfg),
            max_attempts=settings.llm_max_attempts,
            retry_base_delay_seconds=settings.llm_retry_base_delay_seconds,
            reasoning_effort=settings.report_reasoning_effort,
        )

    def _request(self, instructions: str, prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
        request: dict[str, Any] = {
            'model': self.client.cfg.model,
            'instructions': instructions,
            'input': prompt,
            'tools': [{'type': 'web_search'}],
            'tool_choice': 'auto',
            'text': {
                'format': {
                    'type': 'json_schema',
                    'name': schema['name'],
                    'schema': schema['schema'],
                    'strict': True,
                }
            },
        }
        if self.reasoning_effort and self.client.cfg.model.startswith(('gpt-5', 'o')):
            request['reasoning'] = {'effort': self.reasoning_effort}
        return request

    async def _call(self, request: dict[str, Any], task: str) -> tuple[Any, int]:
        """Run one Responses call and decode its JSON output.

        Rate limits, 5xx responses and connection failures are retried with a
        linearly growing delay; a timeout is not retried.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self.client.client().responses.create(**request)
                break
            except APITimeoutError as exc:
                raise UpstreamTimeout(
                    f'LLM {task} exceeded {self.client.cfg.timeout_seconds}s',
                    service='llm',
                ) from exc
            except _TRANSIENT_ERRORS as exc:
                if attempt >= self.max_attempts:
                    raise UpstreamError(
                        f'LLM {task} failed after {attempt} attempts: {exc}',
                        service='llm',
                    ) from exc
                delay = self.retry_base_delay_seconds * attempt
                logger.warning(
                    'LLM call failed (%s), retrying in %.1fs (attempt %s/%s)',
                    type(exc).__name__,
                    delay,
                    attempt,
                    self.max_attempts,
                )
                await self._sleep(delay)
        return _extract_json(response), attempt

    async def generate_report(self, survey: SurveyInput) -> ReportResult:
        request = self._request(REPORT_SYSTEM_PROMPT, build_report_prompt(survey), REPORT_JSON_SCHEMA)
        payload, attempts = await self._call(request, 'report generation')
        parsed = parse_report_result(payload)
        if not parsed.ok:
            raise ValidationError(f'LLM report does not match the schema: {parsed.message}', parsed.errors)
        logger.info('LLM report generated for %s in %s attempt(s)', survey.company_name, attempts)
        return parsed.value

    async def generate_questions(self, profile: CompanyProfile) -> QuestionsResult:
        request = self._request(QUESTIONS_SYSTEM_PROMPT, build_questions_prompt(profile), QUESTIONS_JSON_SCHEMA)
        payload, attempts = await self._call(request, 'question generation')
        parsed = parse_questions_result(payload)
        if not parsed.ok:
            raise ValidationError(f'LLM questions do not match the schema: {parsed.message}', parsed.errors)
        logger.info(
            'LLM generated %s discovery questions for %s in %s attempt(s)',
            len(parsed.value.questions),
            profile.company_name,
            attempts,
        )
        return parsed.value
