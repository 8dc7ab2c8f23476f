"""
Environment configuration.

Every setting is read once at import time.
"""

import os

APP_DIR = os.path.dirname(os.path.abspath(__file__))
PUBLIC_DIR = os.getenv("PUBLIC_DIR", os.path.join(os.path.dirname(APP_DIR), "public"))

PORT = int(os.getenv("PORT", "4000"))

WEBHOOK_TOKEN = os.getenv("WEBHOOK_TOKEN", "")
WEBHOOK_TOKEN_HEADER = os.getenv("WEBHOOK_TOKEN_HEADER", "x-webhook-token").strip().lower()
DEBUG_WEBHOOKS = os.getenv("DEBUG_WEBHOOKS", "false").lower() == "true"

STATE_DIR = os.getenv("STATE_DIR", "./data")
STATUS_FILE = os.getenv("STATUS_FILE", os.path.join(STATE_DIR, "status.json"))
SAVE_DEBOUNCE_SECONDS = float(os.getenv("SAVE_DEBOUNCE_SECONDS", "0.5"))

# minutes without a ping before a vehicle is considered offline
PING_TIMEOUT_MINUTES = float(os.getenv("PING_TIMEOUT_MINUTES", "10"))
PING_TIMEOUT_SECONDS = PING_TIMEOUT_MINUTES * 60.0

# the sweep runs at least once per timeout window
SWEEP_INTERVAL_SECONDS = min(
  float(os.getenv("SWEEP_INTERVAL_SECONDS", "60")),
  max(1.0, PING_TIMEOUT_SECONDS),
)

HEARTBEAT_SECONDS = float(os.getenv("HEARTBEAT_SECONDS", "25"))
STREAM_QUEUE_MAX = int(os.getenv("STREAM_QUEUE_MAX", "256"))

AUTOCAB_KEY = os.getenv("AUTOCAB_KEY", "")
AUTOCAB_VEHICLES_URL = os.getenv(
  "AUTOCAB_VEHICLES_URL", "https://autocab-api.azure-api.net/vehicle/v1/vehicles"
)
UPSTREAM_TIMEOUT_SECONDS = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "10"))
UPSTREAM_BOOL_FIELD = os.getenv("UPSTREAM_BOOL_FIELD", "IsSuspended")
