from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from app.services.errors import DecodeError, UpstreamFetchError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"User-Agent": "county-case-map-backend/0.1"}


def _describe_failure(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"http_status={exc.response.status_code}"
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    return exc.__class__.__name__


class RemoteSourceClient:
    """Fetches raw upstream datasets. Failures are not retried."""

    def __init__(
        self,
        *,
        timeout_sec: float = 30.0,
        chunk_size: int = 64 * 1024,
        transport: httpx.BaseTransport | None = None,
    ):
        self.chunk_size = chunk_size
        self._client = httpx.Client(
            timeout=timeout_sec,
            headers=DEFAULT_HEADERS,
            follow_redirects=True,
            transport=transport,
        )

    def fetch_bytes(self, url: str) -> bytes:
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            reason = _describe_failure(exc)
            logger.warning("upstream_fetch_failed url=%s reason=%s", url, reason)
            raise UpstreamFetchError(f"upstream fetch failed ({reason}): {url}") from exc
        logger.info("upstream_fetch_ok url=%s bytes=%s", url, len(response.content))
        return response.content

    def fetch_json(self, url: str) -> Any:
        raw = self.fetch_bytes(url)
        try:
            return json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DecodeError(f"upstream returned malformed JSON: {url}") from exc

    @contextmanager
    def open_lines(self, url: str) -> Iterator[Iterator[str]]:
        """Yield the decoded text lines of ``url`` while the response streams."""
        with self._stream(url) as response:
            yield self._wrap_stream_errors(url, response.iter_lines())

    def iter_bytes(self, url: str) -> Iterator[bytes]:
        """Generator over raw body chunks; the connection closes when it is exhausted or closed."""
        with self._stream(url) as response:
            yield from self._wrap_stream_errors(url, response.iter_bytes(self.chunk_size))

    @contextmanager
    def _stream(self, url: str) -> Iterator[httpx.Response]:
        try:
            with self._client.stream("GET", url) as response:
                response.raise_for_status()
                logger.info("upstream_stream_open url=%s", url)
                yield response
        except httpx.HTTPError as exc:
            reason = _describe_failure(exc)
            logger.warning("upstream_stream_failed url=%s reason=%s", url, reason)
            raise UpstreamFetchError(f"upstream fetch failed ({reason}): {url}") from exc

    @staticmethod
    def _wrap_stream_errors(url: str, chunks: Iterator[Any]) -> Iterator[Any]:
        try:
            yield from chunks
        except httpx.HTTPError as exc:
            reason = _describe_failure(exc)
            logger.warning("upstream_stream_interrupted url=%s reason=%s", url, reason)
            raise UpstreamFetchError(f"upstream stream interrupted ({reason}): {url}") from exc

    def close(self) -> None:
        self._client.close()
