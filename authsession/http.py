from __future__ import annotations

import asyncio
import logging

import httpx

from .constants import LOGGER
from .env import Settings

_MAX_LOGGED_BODY = 1000
_RETRYABLE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def _retry_after_seconds(header: str | None) -> int | None:
    if header is None:
        return None
    try:
        return max(0, int(header))
    except ValueError:
        return None


class RetryTransport(httpx.AsyncBaseTransport):
    """Retries a 429 once (honouring ``Retry-After``) and 5xx with backoff.

    Only idempotent methods are retried; a POST such as a token refresh or a
    one-time code exchange is sent exactly once.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        *,
        max_retries: int = 0,
        sleep=asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._transport = transport
        self._max_retries = max(0, max_retries)
        self._sleep = sleep
        self._logger = logger or LOGGER

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        body = request.content
        retries = 0

        while True:
            attempt = httpx.Request(
                method=request.method,
                url=request.url,
                headers=request.headers,
                content=body,
                extensions=request.extensions,
            )
            response = await self._transport.handle_async_request(attempt)

            if retries >= self._max_retries or request.method not in _RETRYABLE_METHODS:
                return response

            if response.status_code == 429 and retries == 0:
                wait_seconds = _retry_after_seconds(response.headers.get("retry-after"))
                if wait_seconds is None:
                    wait_seconds = 1
            elif 500 <= response.status_code < 600:
                wait_seconds = 2**retries
            else:
                return response

            self._logger.warning(
                "Retrying %s after %ss (%s %s)",
                response.status_code,
                wait_seconds,
                request.method,
                request.url,
            )
            await response.aclose()
            await self._sleep(wait_seconds)
            retries += 1

    async def aclose(self) -> None:
        await self._transport.aclose()


def build_client(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    debug_enabled = settings.debug

    async def log_request(request: httpx.Request) -> None:
        if not debug_enabled:
            return
        LOGGER.info("Auth API request %s %s", request.method, request.url)

    async def log_response(response: httpx.Response) -> None:
        if not debug_enabled:
            return
        LOGGER.info(
            "Auth API response %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )
        if response.status_code >= 400:
            body = await response.aread()
            text = body.decode("utf-8", errors="replace")
            if len(text) > _MAX_LOGGED_BODY:
                text = text[:_MAX_LOGGED_BODY] + "...<truncated>"
            LOGGER.warning("Auth API error body: %s", text)

    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=settings.api_timeout,
        transport=RetryTransport(
            transport or httpx.AsyncHTTPTransport(),
            max_retries=settings.max_retries,
            logger=LOGGER,
        ),
        headers={"Content-Type": "application/json"},
        event_hooks={"request": [log_request], "response": [log_response]},
    )
