from __future__ import annotations

import asyncio
import json

import httpx

from aibrief.adapters.imagegen import ImageGenAdapter, ImageGenConfig, _extract_image_url
from aibrief.report.sections import ReportSection


PLACEHOLDERS = ['https://cdn.example.com/p0.jpg', 'https://cdn.example.com/p1.jpg', 'https://cdn.example.com/p2.jpg']


def make_config(**overrides) -> ImageGenConfig:
    values = {
        'base_url': 'https://images.example.com/api',
        'api_key': 'secret',
        'create_endpoint': '/tasks',
        'poll_endpoint_template': '/tasks/{task_id}',
        'poll_interval_seconds': 2.0,
        'max_poll_attempts': 4,
        'timeout_seconds': 30,
        'placeholder_urls': list(PLACEHOLDERS),
    }
    values.update(overrides)
    return ImageGenConfig(**values)


async def no_sleep(_delay):
    return None


def scripted_transport(responses: list[httpx.Response], seen: list[httpx.Request]) -> httpx.MockTransport:
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return queue.pop(0)

    return httpx.MockTransport(handler)


def test_unconfigured_service_uses_title_based_placeholder():
    adapter = ImageGenAdapter(make_config(base_url=None))
    section = ReportSection(title='Quick Wins')

    assert asyncio.run(adapter.generate(section)) == PLACEHOLDERS[len('Quick Wins') % 3]


def test_immediate_image_url_is_used():
    seen: list[httpx.Request] = []
    transport = scripted_transport(
        [httpx.Response(200, json={'data': {'image_url': 'https://images.example.com/out/1.png'}})],
        seen,
    )
    adapter = ImageGenAdapter(make_config(), transport=transport, sleep=no_sleep)

    url = asyncio.run(adapter.generate(ReportSection(title='Roadmap', image_prompt='Timeline with milestones')))

    assert url == 'https://images.example.com/out/1.png'
    assert str(seen[0].url) == 'https://images.example.com/api/tasks'
    assert seen[0].headers['Authorization'] == 'Bearer secret'
    body = json.loads(seen[0].content)
    assert body['prompt'].startswith('Timeline with milestones. ')
    assert body['aspect_ratio'] == '16:9'


def test_task_is_polled_until_it_succeeds():
    seen: list[httpx.Request] = []
    transport = scripted_transport(
        [
            httpx.Response(200, json={'task_id': 'abc'}),
            httpx.Response(200, json={'status': 'processing'}),
            httpx.Response(503),
            httpx.Response(200, json={'status': 'succeeded', 'images': [{'url': 'https://images.example.com/abc.png'}]}),
        ],
        seen,
    )
    delays: list[float] = []

    async def record(delay):
        delays.append(delay)

    adapter = ImageGenAdapter(make_config(), transport=transport, sleep=record)
    url = asyncio.run(adapter.generate(ReportSection(title='Summary')))

    assert url == 'https://images.example.com/abc.png'
    assert str(seen[1].url) == 'https://images.example.com/api/tasks/abc'
    assert delays == [2.0, 2.0, 2.0]


def test_failed_task_degrades_to_placeholder():
    transport = scripted_transport(
        [
            httpx.Response(200, json={'id': 7}),
            httpx.Response(200, json={'data': {'state': 'FAILED'}, 'error': 'nsfw'}),
        ],
        [],
    )
    adapter = ImageGenAdapter(make_config(), transport=transport, sleep=no_sleep)
    assert asyncio.run(adapter.generate(ReportSection(title='Summary'))) == PLACEHOLDERS[len('Summary') % 3]


def test_polling_gives_up_after_max_attempts():
    responses = [httpx.Response(200, json={'task_id': 'slow'})]
    responses += [httpx.Response(200, json={'status': 'queued'}) for _ in range(2)]
    adapter = ImageGenAdapter(
        make_config(max_poll_attempts=2),
        transport=scripted_transport(responses, []),
        sleep=no_sleep,
    )
    assert asyncio.run(adapter.generate(ReportSection(title='ab'))) == PLACEHOLDERS[2]


def test_create_error_degrades_to_placeholder():
    adapter = ImageGenAdapter(
        make_config(),
        transport=scripted_transport([httpx.Response(401, json={'error': 'bad key'})], []),
        sleep=no_sleep,
    )
    assert asyncio.run(adapter.generate(ReportSection(title='a'))) == PLACEHOLDERS[1]


def test_attach_banners_fills_only_missing_images_in_order():
    adapter = ImageGenAdapter(make_config(api_key=None))
    sections = [
        ReportSection(title='A', image_url='https://cdn.example.com/keep.jpg'),
        ReportSection(title='BB'),
        ReportSection(title='CCC'),
    ]

    updated = asyncio.run(adapter.attach_banners(sections))

    assert [section.title for section in updated] == ['A', 'BB', 'CCC']
    assert updated[0].image_url == 'https://cdn.example.com/keep.jpg'
    assert updated[1].image_url == PLACEHOLDERS[2]
    assert updated[2].image_url == PLACEHOLDERS[0]


def test_image_url_extraction_shapes():
    assert _extract_image_url({'url': 'https://images.example.com/tasks/1'}) is None
    assert _extract_image_url({'result': {'output': ['https://x.example.com/a.png']}}) == 'https://x.example.com/a.png'
    assert _extract_image_url({'b64_json': 'AAAA'}) == 'data:image/png;base64,AAAA'
