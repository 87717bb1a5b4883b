from __future__ import annotations

from typing import Any

import httpx

from .constants import (
    LOGGER,
    LOGIN_PATH,
    OAUTH_SESSION_TOKENS_PATH,
    PROFILE_PATH,
    PROFILE_UPDATE_PATH,
    REGISTER_PATH,
    RESEND_VERIFICATION_PATH,
    VERIFY_EMAIL_PATH,
)
from .credentials import CredentialStore, TokenPair
from .errors import AuthClientError, HttpError, NetworkError
from .gateway import RequestGateway, parse_body


class AuthSession:
    """Account operations for the signed-in user, backed by the credential store."""

    def __init__(
        self,
        gateway: RequestGateway,
        credentials: CredentialStore,
        client: httpx.AsyncClient,
    ) -> None:
        self._gateway = gateway
        self._credentials = credentials
        self._client = client

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    async def login(self, email: str, password: str) -> dict[str, Any]:
        payload = await self._gateway.post(
            LOGIN_PATH, json={"email": email, "password": password}
        )
        await self.adopt(TokenPair.from_payload(payload))
        LOGGER.info("Logged in")
        return payload

    async def register(
        self,
        email: str,
        password: str,
        password2: str,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"email": email, "password": password, "password2": password2}
        if first_name is not None:
            body["first_name"] = first_name
        if last_name is not None:
            body["last_name"] = last_name
        return await self._gateway.post(REGISTER_PATH, json=body)

    async def verify_email(self, token: str) -> dict[str, Any]:
        payload = await self._gateway.post(VERIFY_EMAIL_PATH, json={"token": token})
        await self.adopt(TokenPair.from_payload(payload))
        return payload

    async def resend_verification(self, email: str) -> dict[str, Any]:
        return await self._gateway.post(RESEND_VERIFICATION_PATH, json={"email": email})

    async def refresh_user(self) -> dict[str, Any]:
        """Fetch the profile and cache it; any failure signs the user out."""
        try:
            profile = await self._gateway.get(PROFILE_PATH)
        except AuthClientError:
            await self._credentials.clear_tokens()
            raise
        await self._credentials.set_user(profile)
        return profile

    async def update_profile(self, **fields: Any) -> dict[str, Any]:
        payload = await self._gateway.patch(PROFILE_UPDATE_PATH, json=fields)
        user = payload.get("user") if isinstance(payload, dict) else None
        if isinstance(user, dict):
            await self._credentials.set_user(user)
        return payload

    async def adopt(self, pair: TokenPair) -> None:
        await self._credentials.store(pair)

    async def fetch_session_tokens(self) -> TokenPair:
        """Cookie-session variant: the backend kept the tokens after the provider redirect."""
        try:
            response = await self._client.get(OAUTH_SESSION_TOKENS_PATH)
        except httpx.RequestError as error:
            raise NetworkError() from error

        body = parse_body(response)
        if not response.is_success:
            raise HttpError(response.status_code, body, "Failed to retrieve tokens from session.")
        pair = TokenPair.from_payload(body)
        await self.adopt(pair)
        return pair

    async def initialize(self) -> dict[str, Any] | None:
        user = await self._credentials.get_user()
        token = await self._credentials.get_access_token()
        if user is None or token is None:
            return None
        try:
            return await self.refresh_user()
        except AuthClientError as error:
            LOGGER.info("Cached session is no longer valid: %s", error)
            return None

    async def logout(self) -> None:
        await self._credentials.clear_tokens()
        LOGGER.info("Logged out")

    async def is_authenticated(self) -> bool:
        return await self._credentials.get_user() is not None
