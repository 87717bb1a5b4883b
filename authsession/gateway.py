from __future__ import annotations

import logging
from typing import Any

import httpx

from .constants import LOGGER
from .credentials import CredentialStore
from .errors import HttpError, NetworkError
from .refresh import RefreshCoordinator


def parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return {"raw": response.content.decode("utf-8", errors="replace")}


class RequestGateway:
    """Issues API calls with the stored bearer token.

    A 401 triggers one refresh through the shared ``RefreshCoordinator`` and
    one retry of the original request; the retry's result is final. When the
    stored token already differs from the one the request was sent with, the
    retry reuses it and no refresh is made.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialStore,
        refresher: RefreshCoordinator,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._refresher = refresher
        self._logger = logger or LOGGER

    async def request(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        json: Any = None,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        access_token = await self._credentials.get_access_token()
        response = await self._send(method, endpoint, access_token, json, params, headers)

        if response.status_code == 401:
            self._logger.info("Unauthorized %s %s; refreshing access token", method, endpoint)
            await response.aclose()
            # A refresh that finished while this request was in flight already
            # stored a newer token; retry with it instead of refreshing again.
            stored_token = await self._credentials.get_access_token()
            if stored_token and stored_token != access_token:
                access_token = stored_token
            else:
                access_token = await self._refresher.acquire_refreshed_token()
            response = await self._send(method, endpoint, access_token, json, params, headers)

        body = parse_body(response)
        if not response.is_success:
            raise HttpError(response.status_code, body)
        return body

    async def get(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="GET", **kwargs)

    async def post(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="POST", **kwargs)

    async def patch(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="PATCH", **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="DELETE", **kwargs)

    async def _send(
        self,
        method: str,
        endpoint: str,
        access_token: str | None,
        json: Any,
        params: dict[str, str] | None,
        headers: dict[str, str] | None,
    ) -> httpx.Response:
        request_headers = dict(headers or {})
        if access_token:
            request_headers["Authorization"] = f"Bearer {access_token}"

        try:
            return await self._client.request(
                method,
                endpoint,
                json=json,
                params=params,
                headers=request_headers,
            )
        except httpx.RequestError as error:
            self._logger.warning("Transport failure for %s %s: %s", method, endpoint, error)
            raise NetworkError() from error
