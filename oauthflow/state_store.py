from __future__ import annotations

from dataclasses import dataclass

from authsession.storage import KeyValueStore


@dataclass
class StoredState:
    value: str
    created_at: float


def state_key(provider: str) -> str:
    return f"oauth_state_{provider}"


def state_time_key(provider: str) -> str:
    return f"oauth_state_time_{provider}"


class StateRepository:
    """One storage backend holding at most one CSRF state per provider."""

    def __init__(self, name: str, backend: KeyValueStore) -> None:
        self.name = name
        self._backend = backend

    async def get(self, provider: str) -> StoredState | None:
        value = await self._backend.get(state_key(provider))
        raw_time = await self._backend.get(state_time_key(provider))
        if not value or not raw_time:
            return None
        try:
            created_at = float(raw_time)
        except ValueError:
            return None
        return StoredState(value=value, created_at=created_at)

    async def put(self, provider: str, state: StoredState) -> None:
        await self._backend.set(
            {
                state_key(provider): state.value,
                state_time_key(provider): repr(state.created_at),
            }
        )

    async def delete(self, provider: str) -> None:
        await self._backend.delete(state_key(provider), state_time_key(provider))


class OAuthStateStore:
    """Ordered repositories; reads take the first hit, writes go to all of them."""

    def __init__(self, repositories: list[StateRepository]) -> None:
        if not repositories:
            raise ValueError("OAuthStateStore needs at least one repository.")
        self._repositories = list(repositories)

    @property
    def repositories(self) -> list[StateRepository]:
        return list(self._repositories)

    async def get(self, provider: str) -> tuple[StoredState, str] | None:
        for repository in self._repositories:
            state = await repository.get(provider)
            if state is not None:
                return state, repository.name
        return None

    async def put(self, provider: str, state: StoredState) -> None:
        for repository in self._repositories:
            await repository.put(provider, state)

    async def delete(self, provider: str) -> None:
        for repository in self._repositories:
            await repository.delete(provider)
