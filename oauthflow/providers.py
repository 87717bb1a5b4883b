from __future__ import annotations

import urllib.parse
from dataclasses import dataclass, field

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    authorize_url: str
    scope: str
    extra_params: dict[str, str] = field(default_factory=dict)


PROVIDERS: dict[str, ProviderConfig] = {
    "google": ProviderConfig(
        name="google",
        authorize_url=GOOGLE_AUTHORIZE_URL,
        scope="openid email profile",
        extra_params={"access_type": "offline", "prompt": "consent"},
    ),
    "github": ProviderConfig(
        name="github",
        authorize_url=GITHUB_AUTHORIZE_URL,
        scope="user:email",
    ),
}


def get_provider(name: str) -> ProviderConfig:
    provider = PROVIDERS.get(name)
    if provider is None:
        raise ValueError(f"Unsupported OAuth provider: {name!r}.")
    return provider


def build_authorization_url(
    provider: ProviderConfig,
    client_id: str,
    redirect_uri: str,
    state: str,
) -> str:
    query = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": provider.scope,
        "state": state,
        **provider.extra_params,
    }
    return f"{provider.authorize_url}?{urllib.parse.urlencode(query)}"
