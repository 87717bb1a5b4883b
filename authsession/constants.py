from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger("authsession")
APP_VERSION = "0.1.0"

ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
DEFAULT_API_BASE_URL = "http://localhost:8001/api/auth"
DEFAULT_FRONTEND_URL = "http://localhost:8081"

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"

LOGIN_PATH = "/login/"
REGISTER_PATH = "/register/"
VERIFY_EMAIL_PATH = "/verify-email/"
RESEND_VERIFICATION_PATH = "/resend-verification/"
PROFILE_PATH = "/profile/"
PROFILE_UPDATE_PATH = "/profile/update/"
REFRESH_PATH = "/token/refresh/"
OAUTH_CONFIG_PATH = "/oauth/config/{provider}/"
OAUTH_EXCHANGE_PATH = "/oauth/exchange/"
OAUTH_SESSION_TOKENS_PATH = "/oauth/session-tokens/"
