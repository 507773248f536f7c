"""Global constants for the wallet service."""

from __future__ import annotations

from decimal import Decimal

SERVICE_NAME = "wallet-service"
REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_ID_CTX_KEY = "request_id"
USER_ID_HEADER = "X-User-Id"
API_PREFIX = "/api/v1"
DEFAULT_ENV_FILE = ".env"
SECRETS_DIR = "/run/secrets"

CENT = Decimal("0.01")
MAX_REFERRAL_LEVELS = 10
