from __future__ import annotations

import httpx

from authsession.constants import LOGGER, OAUTH_EXCHANGE_PATH
from authsession.credentials import TokenPair
from authsession.errors import HttpError, NetworkError, extract_error_message
from authsession.gateway import parse_body

from .state import OAuthStateManager
from .urls import callback_uri


class ExchangeClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        state_manager: OAuthStateManager,
        *,
        frontend_url: str,
    ) -> None:
        self._client = client
        self._state_manager = state_manager
        self._frontend_url = frontend_url

    async def exchange(self, provider: str, code: str, received_state: str) -> TokenPair:
        """Trade an authorization code for credentials once the state checks out.

        Nothing is sent to the backend unless ``verify`` succeeds. The returned
        pair is not stored; the caller decides where it goes.
        """
        await self._state_manager.verify(provider, received_state)

        try:
            response = await self._client.post(
                OAUTH_EXCHANGE_PATH,
                json={
                    "provider": provider,
                    "code": code,
                    "redirect_uri": callback_uri(self._frontend_url, provider),
                },
            )
        except httpx.RequestError as error:
            LOGGER.warning("OAuth exchange transport failure for %s: %s", provider, error)
            raise NetworkError() from error

        body = parse_body(response)
        if not response.is_success:
            message = extract_error_message(body, "Failed to exchange OAuth code.")
            raise HttpError(response.status_code, body, message)

        return TokenPair.from_payload(body)
