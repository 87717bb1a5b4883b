from __future__ import annotations

import asyncio
import logging

import httpx

from .constants import LOGGER, REFRESH_PATH
from .credentials import CredentialStore
from .errors import SessionExpired


class RefreshCoordinator:
    """Single-flight access-token refresh.

    The first caller starts one refresh task; callers arriving while it runs
    await the same task, so they all see one outcome. Waiters go through
    ``asyncio.shield`` and a cancelled waiter leaves the task running.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialStore,
        *,
        refresh_path: str = REFRESH_PATH,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._refresh_path = refresh_path
        self._logger = logger or LOGGER
        self._inflight: asyncio.Task[str] | None = None
        self._waiters = 0

    @property
    def is_refreshing(self) -> bool:
        return self._inflight is not None

    async def acquire_refreshed_token(self) -> str:
        if self._inflight is None:
            self._waiters = 0
            self._inflight = asyncio.create_task(self._refresh())
            self._inflight.add_done_callback(_retrieve_outcome)
        else:
            self._logger.debug("Joining in-flight token refresh")

        self._waiters += 1
        return await asyncio.shield(self._inflight)

    async def _refresh(self) -> str:
        try:
            access_token = await self._request_new_token()
        except SessionExpired:
            await self._credentials.clear_tokens()
            self._logger.warning(
                "Token refresh failed; credentials cleared (%s waiters)", self._waiters
            )
            raise
        finally:
            self._inflight = None

        self._logger.info("Token refreshed for %s waiters", self._waiters)
        return access_token

    async def _request_new_token(self) -> str:
        refresh_token = await self._credentials.get_refresh_token()
        if refresh_token is None:
            raise SessionExpired()

        try:
            response = await self._client.post(self._refresh_path, json={"refresh": refresh_token})
        except httpx.RequestError as error:
            self._logger.warning("Token refresh transport failure: %s", error)
            raise SessionExpired() from error

        if not response.is_success:
            self._logger.warning("Token refresh rejected with status %s", response.status_code)
            raise SessionExpired()

        try:
            payload = response.json()
        except ValueError as error:
            raise SessionExpired() from error

        access_token = payload.get("access") if isinstance(payload, dict) else None
        if not isinstance(access_token, str) or not access_token:
            raise SessionExpired()

        rotated = payload.get("refresh")
        if isinstance(rotated, str) and rotated:
            await self._credentials.set_tokens(access_token, rotated)
        else:
            await self._credentials.set_access_token(access_token)
        return access_token


def _retrieve_outcome(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()
