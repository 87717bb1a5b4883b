from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from .constants import DEFAULT_API_BASE_URL, DEFAULT_FRONTEND_URL, ENV_FILE, LOGGER

_HTTP_URL = TypeAdapter(AnyHttpUrl)


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a numeric value.")


def normalize_api_base_url(url: str) -> str:
    """Strip trailing slashes and make sure the URL ends with ``/api/auth``."""
    normalized = url.strip().rstrip("/")
    if not normalized.endswith("/api/auth"):
        normalized = re.sub(r"/api/?$", "", normalized) + "/api/auth"
    return normalized


def _frontend_url() -> str:
    raw = os.getenv("AUTH_FRONTEND_URL", "").strip() or DEFAULT_FRONTEND_URL
    return raw.rstrip("/")


@dataclass
class Settings:
    api_base_url: str = DEFAULT_API_BASE_URL
    frontend_url: str = DEFAULT_FRONTEND_URL
    google_client_id: str | None = None
    github_client_id: str | None = None
    api_timeout: float = 30.0
    max_retries: int = 0
    credential_store_path: str = ".credentials.json"
    state_store_path: str = ".oauth_state.json"
    debug: bool = True
    allow_session_callback: bool = False
    host: str = "127.0.0.1"
    port: int = 8081

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_base_url=normalize_api_base_url(
                os.getenv("AUTH_API_BASE_URL", "") or DEFAULT_API_BASE_URL
            ),
            frontend_url=_frontend_url(),
            google_client_id=os.getenv("AUTH_GOOGLE_CLIENT_ID", "").strip() or None,
            github_client_id=os.getenv("AUTH_GITHUB_CLIENT_ID", "").strip() or None,
            api_timeout=_get_env_float("AUTH_API_TIMEOUT", 30.0),
            max_retries=_get_env_int("AUTH_API_MAX_RETRIES", 0),
            credential_store_path=os.getenv("AUTH_CREDENTIAL_STORE_PATH", ".credentials.json"),
            state_store_path=os.getenv("AUTH_STATE_STORE_PATH", ".oauth_state.json"),
            debug=is_truthy(os.getenv("AUTH_DEBUG", "1")),
            allow_session_callback=is_truthy(os.getenv("AUTH_ALLOW_SESSION_CALLBACK")),
            host=os.getenv("AUTH_HOST", "127.0.0.1"),
            port=_get_env_int("AUTH_PORT", 8081),
        )

    def local_client_id(self, provider: str) -> str | None:
        return {
            "google": self.google_client_id,
            "github": self.github_client_id,
        }.get(provider)


def load_env() -> None:
    if not ENV_FILE.exists():
        return
    load_dotenv(ENV_FILE, override=True)


def validate_env(settings: Settings) -> None:
    for key, value in (
        ("AUTH_API_BASE_URL", settings.api_base_url),
        ("AUTH_FRONTEND_URL", settings.frontend_url),
    ):
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError:
            raise RuntimeError(f"{key} must be a valid http(s) URL, got {value!r}.")

    if settings.api_timeout <= 0:
        raise RuntimeError("AUTH_API_TIMEOUT must be greater than zero.")

    if not settings.google_client_id and not settings.github_client_id:
        LOGGER.warning(
            "No local OAuth client ids configured; provider logins rely on the backend config endpoint."
        )


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("AUTH_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
