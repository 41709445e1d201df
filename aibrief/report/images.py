from __future__ import annotations

import base64
import binascii
import io
import logging
from urllib.parse import unquote_to_bytes

import httpx
from PIL import Image, UnidentifiedImageError


logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 15 * 1024 * 1024


class ImageLoader:
    """Fetches banner images for one document.

    Accepts ``data:`` URLs and http(s) URLs. Any failure (network, status,
    undecodable bytes) is logged and yields None so the renderer can draw a
    placeholder instead.
    """

    def __init__(self, client: httpx.Client | None = None, *, timeout: float = 10.0):
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._cache: dict[str, bytes | None] = {}

    def __enter__(self) -> 'ImageLoader':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout, follow_redirects=True)
        return self._client

    def load(self, url: str | None) -> bytes | None:
        source = str(url or '').strip()
        if not source:
            return None
        if source in self._cache:
            return self._cache[source]

        try:
            if source.startswith('data:'):
                payload = _decode_data_url(source)
            elif source.startswith(('http://', 'https://')):
                payload = self._fetch(source)
            else:
                logger.warning('Unsupported banner image URL scheme: %s', source[:80])
                payload = None
            if payload is not None:
                payload = _verified_image(payload)
        except (httpx.HTTPError, ValueError, OSError, UnidentifiedImageError, Image.DecompressionBombError) as exc:
            logger.warning('Banner image unavailable (%s): %s', source[:80], exc)
            payload = None

        self._cache[source] = payload
        return payload

    def _fetch(self, url: str) -> bytes:
        response = self._http().get(url)
        response.raise_for_status()
        if len(response.content) > MAX_IMAGE_BYTES:
            raise ValueError(f'image larger than {MAX_IMAGE_BYTES} bytes')
        return response.content


def _decode_data_url(url: str) -> bytes:
    header, sep, data = url.partition(',')
    if not sep:
        raise ValueError('malformed data URL')
    if header.endswith(';base64'):
        try:
            return base64.b64decode(data, validate=False)
        except binascii.Error as exc:
            raise ValueError(f'invalid base64 image data: {exc}') from exc
    return unquote_to_bytes(data)


def _verified_image(payload: bytes) -> bytes:
    """Return bytes reportlab can embed: PNG/JPEG as-is, anything else as PNG."""
    with Image.open(io.BytesIO(payload)) as candidate:
        candidate.verify()
    with Image.open(io.BytesIO(payload)) as image:
        if image.format in {'PNG', 'JPEG'}:
            return payload
        converted = image.convert('RGBA' if 'A' in image.getbands() else 'RGB')
        buffer = io.BytesIO()
        converted.save(buffer, format='PNG')
        return buffer.getvalue()


def image_size(payload: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(payload)) as image:
        return image.size


def to_data_url(payload: bytes) -> str:
    with Image.open(io.BytesIO(payload)) as image:
        mime = 'image/jpeg' if image.format == 'JPEG' else 'image/png'
    return f'data:{mime};base64,{base64.b64encode(payload).decode("ascii")}'
