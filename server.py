from __future__ import annotations

import contextlib
from pathlib import Path

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from authsession.constants import APP_VERSION, LOGGER
from authsession.credentials import CredentialStore
from authsession.env import Settings, load_env, setup_logging, validate_env
from authsession.gateway import RequestGateway
from authsession.http import build_client
from authsession.refresh import RefreshCoordinator
from authsession.session import AuthSession
from authsession.storage import FileKeyValueStore, MemoryKeyValueStore
from oauthflow.callback import OAuthRoutes
from oauthflow.exchange import ExchangeClient
from oauthflow.initiator import AuthorizationInitiator
from oauthflow.state import OAuthStateManager
from oauthflow.state_store import OAuthStateStore, StateRepository


def load_settings() -> Settings:
    load_env()
    setup_logging()
    settings = Settings.from_env()
    validate_env(settings)
    return settings


def create_app(settings: Settings | None = None, *, transport=None) -> Starlette:
    settings = settings or load_settings()

    client = build_client(settings, transport=transport)
    credentials = CredentialStore(FileKeyValueStore(Path(settings.credential_store_path)))
    refresher = RefreshCoordinator(client, credentials)
    gateway = RequestGateway(client, credentials, refresher)
    session = AuthSession(gateway, credentials, client)

    state_store = OAuthStateStore(
        [
            StateRepository("session", MemoryKeyValueStore()),
            StateRepository("durable", FileKeyValueStore(Path(settings.state_store_path))),
        ]
    )
    state_manager = OAuthStateManager(state_store)
    oauth_routes = OAuthRoutes(
        initiator=AuthorizationInitiator(client, state_manager, settings),
        exchange_client=ExchangeClient(client, state_manager, frontend_url=settings.frontend_url),
        session=session,
        allow_session_callback=settings.allow_session_callback,
    )

    async def health_route(request: Request) -> Response:
        del request
        return JSONResponse(
            {
                "status": "ok",
                "version": APP_VERSION,
                "authenticated": await session.is_authenticated(),
            }
        )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        del app
        user = await session.initialize()
        LOGGER.info("Session restored: %s", "yes" if user else "no")
        try:
            yield
        finally:
            await client.aclose()

    app = Starlette(
        routes=[*oauth_routes.routes(), Route("/health", health_route, methods=["GET"])],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.client = client
    app.state.session = session
    app.state.state_manager = state_manager
    return app


def main() -> None:
    settings = load_settings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
