from __future__ import annotations

import hmac
import logging

from fastapi.security import APIKeyHeader

from app.core.config import Settings
from app.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def accepted_api_keys(settings: Settings) -> list[str]:
    """Comma-separated keys; several may be live at once while a key is being rotated."""
    return [key.strip() for key in settings.api_key.split(",") if key.strip()]


def verify_api_key(settings: Settings, presented: str | None, path: str = "") -> None:
    accepted = accepted_api_keys(settings)
    if not accepted:
        return
    if not presented:
        logger.warning("api_key_missing", extra={"path": path})
        raise UnauthorizedError("missing API key")
    if not any(hmac.compare_digest(presented.encode(), key.encode()) for key in accepted):
        logger.warning("api_key_rejected", extra={"path": path})
        raise UnauthorizedError("invalid API key")
