import pytest

from authsession.credentials import CredentialStore
from authsession.env import Settings
from authsession.storage import MemoryKeyValueStore
from oauthflow.state import OAuthStateManager
from oauthflow.state_store import OAuthStateStore, StateRepository
from tests.oauth_helpers import BASE_URL, FRONTEND_URL, FakeClock


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_base_url=BASE_URL,
        frontend_url=FRONTEND_URL,
        debug=False,
    )


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore(MemoryKeyValueStore())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state_backends() -> tuple[MemoryKeyValueStore, MemoryKeyValueStore]:
    return MemoryKeyValueStore(), MemoryKeyValueStore()


@pytest.fixture
def state_manager(state_backends, clock) -> OAuthStateManager:
    primary, secondary = state_backends
    store = OAuthStateStore(
        [StateRepository("session", primary), StateRepository("durable", secondary)]
    )
    return OAuthStateManager(store, clock=clock)
