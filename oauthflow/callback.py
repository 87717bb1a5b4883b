from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from authsession.constants import LOGGER
from authsession.errors import AuthClientError, ConfigurationError, CSRFError
from authsession.session import AuthSession

from .exchange import ExchangeClient
from .initiator import AuthorizationInitiator
from .providers import PROVIDERS

_CANCELLED_ERRORS = {"access_denied", "denied"}


class OAuthRoutes:
    """Login redirect and provider callback endpoints."""

    def __init__(
        self,
        *,
        initiator: AuthorizationInitiator,
        exchange_client: ExchangeClient,
        session: AuthSession,
        allow_session_callback: bool = False,
    ) -> None:
        self.initiator = initiator
        self.exchange_client = exchange_client
        self.session = session
        self.allow_session_callback = allow_session_callback

    def routes(self) -> list[Route]:
        return [
            Route("/auth/login/{provider}", self._handle_login, methods=["GET"]),
            Route("/auth/callback/{provider}", self._handle_callback, methods=["GET"]),
        ]

    # -- handlers --------------------------------------------------------------

    async def _handle_login(self, request: Request) -> Response:
        provider = request.path_params["provider"]
        if provider not in PROVIDERS:
            return _error("invalid_provider", "Invalid OAuth provider.", 400)

        try:
            return await self.initiator.initiate(provider)
        except ConfigurationError as error:
            return _error("oauth_not_configured", str(error), 503)

    async def _handle_callback(self, request: Request) -> Response:
        params = request.query_params
        error = params.get("error")
        if error:
            if error in _CANCELLED_ERRORS:
                description = "OAuth authentication was cancelled."
            else:
                description = params.get("error_description") or (
                    "OAuth authentication failed. Please try again."
                )
            return _error("oauth_error", description, 400)

        provider = request.path_params["provider"]
        if provider not in PROVIDERS:
            return _error("invalid_provider", "Invalid OAuth provider.", 400)

        if params.get("session") == "true":
            # No CSRF state is checked here; the login rests on the backend's
            # cookie session, so the variant must be enabled explicitly.
            if not self.allow_session_callback:
                LOGGER.warning("Rejected session callback for %s; variant is disabled", provider)
                return _error("invalid_request", "Session callback is not enabled.", 400)
            try:
                await self.session.fetch_session_tokens()
            except RuntimeError as failure:
                LOGGER.warning("Session token retrieval failed for %s: %s", provider, failure)
                return _error("exchange_failed", str(failure), 502)
            return await self._complete(provider)

        code = params.get("code")
        state = params.get("state")
        if not code or not state:
            return _error(
                "invalid_request", "Invalid OAuth callback. Missing required parameters.", 400
            )

        try:
            pair = await self.exchange_client.exchange(provider, code, state)
        except CSRFError as failure:
            return _error("invalid_state", str(failure), 400)
        except RuntimeError as failure:
            LOGGER.warning("OAuth exchange failed for %s: %s", provider, failure)
            return _error("exchange_failed", str(failure), 502)

        await self.session.adopt(pair)
        return await self._complete(provider)

    async def _complete(self, provider: str) -> Response:
        try:
            user = await self.session.refresh_user()
        except AuthClientError as failure:
            LOGGER.warning("Profile load after %s login failed: %s", provider, failure)
            return _error(
                "profile_failed",
                "Authentication successful but failed to load user data. Please try again.",
                502,
            )

        LOGGER.info("Logged in with %s", provider)
        return JSONResponse({"status": "authenticated", "provider": provider, "user": user})


def _error(code: str, description: str, status_code: int) -> Response:
    return JSONResponse(
        {"error": code, "error_description": description},
        status_code=status_code,
    )
