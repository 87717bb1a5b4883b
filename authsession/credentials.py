from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .constants import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY
from .storage import KeyValueStore, MemoryKeyValueStore


@dataclass
class TokenPair:
    access: str
    refresh: str
    user: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "TokenPair":
        """Parse ``{tokens: {access, refresh}, user}`` or flat ``{access, refresh, user}``."""
        if not isinstance(payload, dict):
            raise RuntimeError("Token response must be a JSON object.")

        tokens = payload.get("tokens")
        source = tokens if isinstance(tokens, dict) else payload
        access = source.get("access")
        refresh = source.get("refresh")
        user = payload.get("user")

        if not isinstance(access, str) or not access:
            raise RuntimeError("Token response missing access token.")
        if not isinstance(refresh, str) or not refresh:
            raise RuntimeError("Token response missing refresh token.")
        if user is not None and not isinstance(user, dict):
            raise RuntimeError("Token response user must be an object.")

        return cls(access=access, refresh=refresh, user=user)


class CredentialStore:
    """Access token, refresh token and cached user snapshot.

    Absence is reported as ``None``. Token writes go to the backend as one
    ``set``/``delete`` call, so a reader never sees half of a pair.
    """

    def __init__(self, backend: KeyValueStore | None = None) -> None:
        self._backend = backend or MemoryKeyValueStore()

    async def get_access_token(self) -> str | None:
        return await self._backend.get(ACCESS_TOKEN_KEY)

    async def get_refresh_token(self) -> str | None:
        return await self._backend.get(REFRESH_TOKEN_KEY)

    async def set_tokens(self, access: str, refresh: str) -> None:
        await self._backend.set({ACCESS_TOKEN_KEY: access, REFRESH_TOKEN_KEY: refresh})

    async def set_access_token(self, access: str) -> None:
        await self._backend.set({ACCESS_TOKEN_KEY: access})

    async def get_user(self) -> dict[str, Any] | None:
        raw = await self._backend.get(USER_KEY)
        if raw is None:
            return None
        try:
            user = json.loads(raw)
        except (TypeError, ValueError):
            return None
        return user if isinstance(user, dict) else None

    async def set_user(self, user: dict[str, Any]) -> None:
        await self._backend.set({USER_KEY: json.dumps(user)})

    async def store(self, pair: TokenPair) -> None:
        values = {ACCESS_TOKEN_KEY: pair.access, REFRESH_TOKEN_KEY: pair.refresh}
        if pair.user is not None:
            values[USER_KEY] = json.dumps(pair.user)
        await self._backend.set(values)

    async def clear_tokens(self) -> None:
        await self._backend.delete(ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)
