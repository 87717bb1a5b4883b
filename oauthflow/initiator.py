from __future__ import annotations

import httpx
from starlette.responses import RedirectResponse

from authsession.constants import LOGGER, OAUTH_CONFIG_PATH
from authsession.env import Settings
from authsession.errors import ConfigurationError

from .providers import build_authorization_url, get_provider
from .state import OAuthStateManager
from .urls import callback_uri


class AuthorizationInitiator:
    def __init__(
        self,
        client: httpx.AsyncClient,
        state_manager: OAuthStateManager,
        settings: Settings,
    ) -> None:
        self._client = client
        self._state_manager = state_manager
        self._settings = settings

    async def resolve_client_id(self, provider: str) -> str:
        """Backend config first, then the locally configured id."""
        try:
            response = await self._client.get(OAUTH_CONFIG_PATH.format(provider=provider))
            response.raise_for_status()
            client_id = response.json().get("client_id")
        except (httpx.HTTPError, ValueError, AttributeError) as error:
            LOGGER.info("Backend OAuth config for %s unavailable: %s", provider, error)
            client_id = None

        if isinstance(client_id, str) and client_id:
            return client_id

        local_id = self._settings.local_client_id(provider)
        if local_id:
            return local_id
        raise ConfigurationError(
            f"{provider} OAuth is not configured. Set AUTH_{provider.upper()}_CLIENT_ID "
            "or configure it in the backend."
        )

    async def authorization_url(self, provider: str) -> str:
        config = get_provider(provider)
        client_id = await self.resolve_client_id(provider)
        state = await self._state_manager.issue(provider)
        return build_authorization_url(
            config,
            client_id=client_id,
            redirect_uri=callback_uri(self._settings.frontend_url, provider),
            state=state,
        )

    async def initiate(self, provider: str) -> RedirectResponse:
        url = await self.authorization_url(provider)
        LOGGER.info("Redirecting to %s authorization", provider)
        return RedirectResponse(url=url, status_code=302)
