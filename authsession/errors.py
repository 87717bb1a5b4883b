from __future__ import annotations

from typing import Any

_MESSAGE_KEYS = ("message", "detail", "non_field_errors", "error_description", "error")


def _first_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str) and item.strip():
                return item
    return None


def extract_error_message(body: Any, fallback: str) -> str:
    """Return the first human-readable string in a backend error payload.

    Payloads may carry ``message``/``detail`` or field-keyed arrays such as
    ``{"email": ["already registered"]}``.
    """
    if not isinstance(body, dict):
        return fallback

    for key in _MESSAGE_KEYS:
        text = _first_text(body.get(key))
        if text is not None:
            return text

    for value in body.values():
        text = _first_text(value)
        if text is not None:
            return text
    return fallback


class AuthClientError(RuntimeError):
    pass


class NetworkError(AuthClientError):
    def __init__(self, message: str = "Network error or server unavailable.") -> None:
        super().__init__(message)


class HttpError(AuthClientError):
    def __init__(self, status_code: int, body: Any, message: str | None = None) -> None:
        if message is None:
            message = extract_error_message(body, f"Request failed with status {status_code}.")
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SessionExpired(AuthClientError):
    def __init__(self, message: str = "Session expired. Please login again.") -> None:
        super().__init__(message)
        self.status_code = 401


class CSRFError(AuthClientError):
    def __init__(self, reason: str) -> None:
        super().__init__(
            f"Invalid OAuth state ({reason}). Possible CSRF attack or expired session."
        )
        self.reason = reason


class ConfigurationError(AuthClientError):
    pass
