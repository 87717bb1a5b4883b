from __future__ import annotations

CALLBACK_PATH = "/auth/callback/{provider}"


def normalize_redirect_uri(uri: str) -> str:
    return uri.rstrip("/")


def callback_uri(frontend_url: str, provider: str) -> str:
    """Redirect URI registered with the provider; authorize and exchange must agree on it."""
    base = frontend_url.rstrip("/")
    return normalize_redirect_uri(f"{base}{CALLBACK_PATH.format(provider=provider)}")
