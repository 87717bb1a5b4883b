import asyncio

import httpx
import pytest

from authsession.errors import HttpError, NetworkError, SessionExpired
from tests.oauth_helpers import BASE_URL, ExpiringBackend, _build_gateway

PROFILE_URL = f"{BASE_URL}/profile/"
REFRESH_URL = f"{BASE_URL}/token/refresh/"


@pytest.mark.asyncio
async def test_attaches_bearer_token(httpx_mock, credentials) -> None:
    httpx_mock.add_response(
        url=PROFILE_URL,
        match_headers={"Authorization": "Bearer A1"},
        json={"id": 1},
    )
    await credentials.set_tokens("A1", "R1")
    gateway, _, _ = _build_gateway(credentials)

    assert await gateway.get("/profile/") == {"id": 1}


@pytest.mark.asyncio
async def test_unauthenticated_request_has_no_bearer(httpx_mock, credentials) -> None:
    httpx_mock.add_response(url=f"{BASE_URL}/register/", method="POST", status_code=201, json={})
    gateway, _, _ = _build_gateway(credentials)

    await gateway.post("/register/", json={"email": "user@test.com"})

    assert "authorization" not in httpx_mock.get_request().headers


@pytest.mark.asyncio
async def test_refreshes_and_retries_after_401(httpx_mock, credentials) -> None:
    httpx_mock.add_response(
        url=PROFILE_URL,
        match_headers={"Authorization": "Bearer A1"},
        status_code=401,
        json={"detail": "Given token not valid"},
    )
    httpx_mock.add_response(url=REFRESH_URL, method="POST", json={"access": "A2"})
    httpx_mock.add_response(
        url=PROFILE_URL,
        match_headers={"Authorization": "Bearer A2"},
        json={"data": "profile"},
    )
    await credentials.set_tokens("A1", "R1")
    gateway, _, _ = _build_gateway(credentials)

    assert await gateway.get("/profile/") == {"data": "profile"}
    assert await credentials.get_access_token() == "A2"
    assert await credentials.get_refresh_token() == "R1"


@pytest.mark.asyncio
async def test_failed_refresh_surfaces_session_expired(httpx_mock, credentials) -> None:
    httpx_mock.add_response(url=PROFILE_URL, status_code=401, json={"detail": "expired"})
    httpx_mock.add_response(url=REFRESH_URL, method="POST", status_code=401, json={"detail": "bad"})
    await credentials.set_tokens("A1", "R1")
    await credentials.set_user({"id": 1})
    gateway, _, _ = _build_gateway(credentials)

    with pytest.raises(SessionExpired):
        await gateway.get("/profile/")

    assert await credentials.get_access_token() is None
    assert await credentials.get_refresh_token() is None
    assert await credentials.get_user() is None


@pytest.mark.asyncio
async def test_second_401_is_final(httpx_mock, credentials) -> None:
    httpx_mock.add_response(
        url=PROFILE_URL, match_headers={"Authorization": "Bearer A1"}, status_code=401, json={}
    )
    httpx_mock.add_response(url=REFRESH_URL, method="POST", json={"access": "A2"})
    httpx_mock.add_response(
        url=PROFILE_URL,
        match_headers={"Authorization": "Bearer A2"},
        status_code=401,
        json={"detail": "still no"},
    )
    await credentials.set_tokens("A1", "R1")
    gateway, _, _ = _build_gateway(credentials)

    with pytest.raises(HttpError) as excinfo:
        await gateway.get("/profile/")

    assert excinfo.value.status_code == 401
    assert str(excinfo.value) == "still no"
    assert len(httpx_mock.get_requests(url=REFRESH_URL)) == 1


@pytest.mark.asyncio
async def test_401_without_refresh_token(httpx_mock, credentials) -> None:
    httpx_mock.add_response(url=PROFILE_URL, status_code=401, json={"detail": "expired"})
    await credentials.set_access_token("A1")
    gateway, _, _ = _build_gateway(credentials)

    with pytest.raises(SessionExpired):
        await gateway.get("/profile/")

    assert httpx_mock.get_requests(url=REFRESH_URL) == []
    assert await credentials.get_access_token() is None


@pytest.mark.asyncio
async def test_http_error_carries_status_and_body(httpx_mock, credentials) -> None:
    httpx_mock.add_response(
        url=f"{BASE_URL}/login/",
        method="POST",
        status_code=400,
        json={"email": ["Enter a valid email address."]},
    )
    gateway, _, _ = _build_gateway(credentials)

    with pytest.raises(HttpError) as excinfo:
        await gateway.post("/login/", json={"email": "nope"})

    assert excinfo.value.status_code == 400
    assert excinfo.value.body == {"email": ["Enter a valid email address."]}
    assert str(excinfo.value) == "Enter a valid email address."


@pytest.mark.asyncio
async def test_non_json_error_body(httpx_mock, credentials) -> None:
    httpx_mock.add_response(url=PROFILE_URL, status_code=502, text="bad gateway")
    gateway, _, _ = _build_gateway(credentials)

    with pytest.raises(HttpError) as excinfo:
        await gateway.get("/profile/")

    assert excinfo.value.body == {"raw": "bad gateway"}


@pytest.mark.asyncio
async def test_transport_failure_is_network_error(httpx_mock, credentials) -> None:
    httpx_mock.add_exception(httpx.ConnectError("connection refused"), url=PROFILE_URL)
    gateway, _, _ = _build_gateway(credentials)

    with pytest.raises(NetworkError):
        await gateway.get("/profile/")


@pytest.mark.asyncio
async def test_empty_success_body_is_none(httpx_mock, credentials) -> None:
    httpx_mock.add_response(url=f"{BASE_URL}/credentials/1/", method="DELETE", status_code=204)
    gateway, _, _ = _build_gateway(credentials)

    assert await gateway.delete("/credentials/1/") is None


@pytest.mark.asyncio
async def test_concurrent_401s_share_one_refresh(credentials) -> None:
    backend = ExpiringBackend(expected_401s=5)
    await credentials.set_tokens("A1", "R1")
    gateway, _, _ = _build_gateway(credentials, httpx.MockTransport(backend))

    results = await asyncio.gather(*(gateway.get(f"/items/{i}/") for i in range(5)))

    assert results == [{"data": f"/api/auth/items/{i}/"} for i in range(5)]
    assert backend.refresh_calls == [{"refresh": "R1"}]
    assert backend.unauthorized == 5
    assert await credentials.get_access_token() == "A2"
    assert await credentials.get_refresh_token() == "R1"


@pytest.mark.asyncio
async def test_concurrent_401s_fail_together(credentials) -> None:
    backend = ExpiringBackend(expected_401s=4, refresh_status=401)
    await credentials.set_tokens("A1", "R1")
    gateway, refresher, _ = _build_gateway(credentials, httpx.MockTransport(backend))

    results = await asyncio.gather(
        *(gateway.get("/profile/") for _ in range(4)), return_exceptions=True
    )

    assert all(isinstance(result, SessionExpired) for result in results)
    assert all(result is results[0] for result in results)
    assert len(backend.refresh_calls) == 1
    assert backend.data_calls == 0
    assert not refresher.is_refreshing
    assert await credentials.get_refresh_token() is None


class StaggeredBackend:
    """Holds ``/slow/`` until released so its 401 lands after a refresh has finished."""

    def __init__(self) -> None:
        self.refresh_calls = 0
        self.slow_sent = asyncio.Event()
        self.release_slow = asyncio.Event()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/token/refresh/"):
            self.refresh_calls += 1
            return httpx.Response(200, json={"access": "A2"})

        authorization = request.headers.get("authorization")
        if request.url.path.endswith("/slow/") and authorization == "Bearer A1":
            self.slow_sent.set()
            await self.release_slow.wait()

        if authorization == "Bearer A2":
            return httpx.Response(200, json={"data": request.url.path})
        return httpx.Response(401, json={"detail": "Given token not valid"})


@pytest.mark.asyncio
async def test_late_401_reuses_already_refreshed_token(credentials) -> None:
    backend = StaggeredBackend()
    await credentials.set_tokens("A1", "R1")
    gateway, refresher, _ = _build_gateway(credentials, httpx.MockTransport(backend))

    slow = asyncio.create_task(gateway.get("/slow/"))
    await backend.slow_sent.wait()

    assert await gateway.get("/fast/") == {"data": "/api/auth/fast/"}
    assert not refresher.is_refreshing

    backend.release_slow.set()

    assert await slow == {"data": "/api/auth/slow/"}
    assert backend.refresh_calls == 1
    assert await credentials.get_access_token() == "A2"
