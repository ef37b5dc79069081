"""
Runtime configuration for flowbridge.

Values are read from the environment (a local ``.env`` file is honoured)
once at import time.
"""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _optional_float(name: str) -> Optional[float]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    return float(raw)


# ---------------------------------------------------------------------------
# Outbound HTTP
# ---------------------------------------------------------------------------
MAX_ATTEMPTS = int(os.environ.get("FLOWBRIDGE_MAX_ATTEMPTS", "5"))
DEFAULT_RETRY_AFTER = int(os.environ.get("FLOWBRIDGE_DEFAULT_RETRY_AFTER", "60"))
HTTP_TIMEOUT = float(os.environ.get("FLOWBRIDGE_HTTP_TIMEOUT", "30.0"))
# Wall-clock limit for a whole retry loop, unset means no limit
INVOKE_DEADLINE = _optional_float("FLOWBRIDGE_INVOKE_DEADLINE")

# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------
TUNNEL_BASE_URL = os.environ.get("TUNNEL_BASE_URL", "http://localhost:8000/")
WEBHOOK_PATH_PREFIX = "api/v1/webhook/"

# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
BACKEND_CORS_ORIGINS = os.environ.get("BACKEND_CORS_ORIGINS", "")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
