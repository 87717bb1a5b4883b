from __future__ import annotations

import hmac
import secrets
import time
from typing import Callable

from authsession.constants import LOGGER
from authsession.errors import CSRFError

from .providers import get_provider
from .state_store import OAuthStateStore, StoredState

STATE_TTL_SECONDS = 600


def generate_state() -> str:
    return secrets.token_urlsafe(32)


class OAuthStateManager:
    """Issues and checks the one-time CSRF state bound to an authorization attempt."""

    def __init__(
        self,
        store: OAuthStateStore,
        *,
        ttl_seconds: int = STATE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def generate_state(self) -> str:
        return generate_state()

    async def store(self, provider: str, value: str) -> StoredState:
        get_provider(provider)
        state = StoredState(value=value, created_at=self._clock())
        await self._store.put(provider, state)
        return state

    async def issue(self, provider: str) -> str:
        value = self.generate_state()
        await self.store(provider, value)
        return value

    async def verify(self, provider: str, received: str) -> None:
        """Consume the stored state for ``provider`` or raise ``CSRFError``.

        A mismatch leaves the stored record in place; expiry and success purge
        it from every repository.
        """
        found = await self._store.get(provider)
        if found is None:
            LOGGER.warning("OAuth state for %s not found in any repository", provider)
            raise CSRFError("missing")

        stored, source = found
        if self._clock() - stored.created_at > self._ttl_seconds:
            await self._store.delete(provider)
            LOGGER.warning("OAuth state for %s expired (from %s)", provider, source)
            raise CSRFError("expired")

        if not received or not hmac.compare_digest(stored.value.encode(), received.encode()):
            LOGGER.warning("OAuth state mismatch for %s (from %s)", provider, source)
            raise CSRFError("mismatch")

        await self._store.delete(provider)
        LOGGER.info("OAuth state for %s verified (from %s)", provider, source)
