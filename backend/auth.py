"""
Authentication helpers for webhook routes.
"""

import hmac
from typing import Optional

from fastapi import HTTPException, Request

import config


def extract_token(request: Request) -> Optional[str]:
  """Extract the shared webhook secret from request headers."""
  token = request.headers.get(config.WEBHOOK_TOKEN_HEADER)
  if token is None:
    return None
  return token.strip()


def require_webhook_token(request: Request) -> None:
  """Raise HTTPException if a webhook secret is configured and not presented."""
  if not config.WEBHOOK_TOKEN:
    return
  token = extract_token(request)
  if not token or not hmac.compare_digest(token.encode(), config.WEBHOOK_TOKEN.encode()):
    raise HTTPException(status_code=401, detail="unauthorized")
