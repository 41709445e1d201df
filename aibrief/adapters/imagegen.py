from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

from ..config import Settings
from ..report.sections import ReportSection


logger = logging.getLogger(__name__)

_SUCCESS_STATES = {'succeeded', 'success', 'completed', 'complete', 'done', 'finished'}
_FAILURE_STATES = {'failed', 'failure', 'error', 'cancelled', 'canceled', 'rejected'}

STYLE_PROMPT = (
    'Style: modern, professional, abstract business imagery with a teal (#08b2c6, #b5feff) '
    'and accent orange (#ff6b11) palette. Clean, minimalist composition suitable for a '
    'corporate report banner. No text or words in the image.'
)


@dataclass
class ImageGenConfig:
    base_url: str | None
    api_key: str | None
    create_endpoint: str
    poll_endpoint_template: str
    poll_interval_seconds: float
    max_poll_attempts: int
    timeout_seconds: int
    placeholder_urls: list[str] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: Settings) -> 'ImageGenConfig':
        return cls(
            base_url=settings.imagegen_base_url,
            api_key=settings.imagegen_api_key,
            create_endpoint=settings.imagegen_create_endpoint,
            poll_endpoint_template=settings.imagegen_poll_endpoint_template,
            poll_interval_seconds=settings.imagegen_poll_interval_seconds,
            max_poll_attempts=settings.imagegen_max_poll_attempts,
            timeout_seconds=settings.imagegen_timeout_seconds,
            placeholder_urls=settings.placeholder_images(),
        )


class ImageGenError(RuntimeError):
    pass


class ImageGenAdapter:
    """Creates a banner-image task on a remote service and polls it to completion.

    Any failure degrades to a placeholder URL picked deterministically from the
    section title, so report generation never stops on a missing banner.
    """

    def __init__(
        self,
        cfg: ImageGenConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.cfg = cfg
        self._transport = transport
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self.cfg.base_url and self.cfg.api_key)

    def placeholder_for(self, title: str) -> str | None:
        urls = self.cfg.placeholder_urls
        if not urls:
            return None
        return urls[len(title) % len(urls)]

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith(('http://', 'https://')):
            return endpoint
        base = str(self.cfg.base_url or '').rstrip('/')
        return f'{base}/{endpoint.lstrip("/")}'

    def _headers(self) -> dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {self.cfg.api_key}',
        }

    async def generate(self, section: ReportSection) -> str | None:
        if not self.configured:
            logger.info('Image generation not configured; using placeholder for %r', section.title)
            return self.placeholder_for(section.title)

        try:
            return await self._generate_remote(section)
        except (httpx.HTTPError, ImageGenError, ValueError) as exc:
            logger.warning('Banner generation failed for %r: %s; using placeholder', section.title, exc)
            return self.placeholder_for(section.title)

    async def _generate_remote(self, section: ReportSection) -> str:
        prompt = section.image_prompt or f'Professional business visualization for: {section.title}'
        payload = {'prompt': f'{prompt}. {STYLE_PROMPT}', 'aspect_ratio': '16:9'}

        async with httpx.AsyncClient(
            timeout=max(5, int(self.cfg.timeout_seconds)),
            transport=self._transport,
        ) as client:
            response = await client.post(self._build_url(self.cfg.create_endpoint), headers=self._headers(), json=payload)
            response.raise_for_status()
            created = response.json()

            immediate = _extract_image_url(created)
            if immediate:
                return immediate

            task_id = _extract_task_id(created)
            if not task_id:
                raise ImageGenError(f'Image task response missing task id: {created}')
            return await self._poll_task(client, task_id)

    async def _poll_task(self, client: httpx.AsyncClient, task_id: str) -> str:
        poll_url = self._build_url(self.cfg.poll_endpoint_template.format(task_id=task_id))
        last_state = 'unknown'
        attempts = max(1, int(self.cfg.max_poll_attempts))

        for attempt in range(1, attempts + 1):
            await self._sleep(max(0.0, float(self.cfg.poll_interval_seconds)))
            try:
                response = await client.get(poll_url, headers=self._headers())
            except httpx.TransportError as exc:
                logger.debug('Image task %s poll %s failed: %s', task_id, attempt, exc)
                continue
            if response.status_code >= 500 or response.status_code == 404:
                continue
            response.raise_for_status()

            payload = response.json()
            if not isinstance(payload, dict):
                continue
            last_state = _extract_state(payload)
            if last_state in _SUCCESS_STATES:
                image_url = _extract_image_url(payload)
                if not image_url:
                    raise ImageGenError(f'Image task {task_id} finished without an image')
                return image_url
            if last_state in _FAILURE_STATES:
                raise ImageGenError(f'Image task {task_id} failed: {payload.get("error") or last_state}')

        raise ImageGenError(f'Image task {task_id} still {last_state} after {attempts} polls')

    async def attach_banners(self, sections: list[ReportSection]) -> list[ReportSection]:
        """Fill missing banner URLs concurrently, keeping section order."""
        pending = [index for index, section in enumerate(sections) if not section.image_url]
        if not pending:
            return list(sections)
        urls = await asyncio.gather(*(self.generate(sections[index]) for index in pending))
        updated = list(sections)
        for index, url in zip(pending, urls):
            updated[index] = sections[index].with_image(url)
        return updated


def _dig(payload: dict[str, Any]) -> list[dict[str, Any]]:
    layers = [payload]
    data = payload.get('data')
    if isinstance(data, dict):
        layers.append(data)
    result = payload.get('result') or (data.get('result') if isinstance(data, dict) else None)
    if isinstance(result, dict):
        layers.append(result)
    return layers


def _extract_task_id(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    for layer in _dig(payload):
        for key in ('task_id', 'taskId', 'id'):
            value = layer.get(key)
            if isinstance(value, (str, int)) and str(value).strip():
                return str(value).strip()
    return None


def _extract_state(payload: dict[str, Any]) -> str:
    for layer in _dig(payload):
        for key in ('status', 'state'):
            value = layer.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip().lower()
    return 'unknown'


def _extract_image_url(payload: Any, *, allow_url_key: bool = False) -> str | None:
    if not isinstance(payload, dict):
        return None
    for layer in _dig(payload):
        keys = ('image_url', 'imageUrl', 'url') if allow_url_key else ('image_url', 'imageUrl')
        for key in keys:
            value = layer.get(key)
            if isinstance(value, str) and value.startswith(('http://', 'https://', 'data:image/')):
                return value
        images = layer.get('images') or layer.get('output')
        if isinstance(images, list):
            for item in images:
                if isinstance(item, str) and item.startswith(('http://', 'https://', 'data:image/')):
                    return item
                if isinstance(item, dict):
                    nested = _extract_image_url(item, allow_url_key=True)
                    if nested:
                        return nested
        encoded = layer.get('image_base64') or layer.get('b64_json')
        if isinstance(encoded, str) and encoded.strip():
            mime = str(layer.get('mime_type') or layer.get('mimeType') or 'image/png')
            return f'data:{mime};base64,{encoded.strip()}'
    return None
