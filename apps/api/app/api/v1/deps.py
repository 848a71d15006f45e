from __future__ import annotations

from fastapi import Depends, Request

from app.core.config import Settings, get_settings
from app.core.security import api_key_header, verify_api_key


def get_settings_dep() -> Settings:
    return get_settings()


def require_api_key(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
    x_api_key: str | None = Depends(api_key_header),
) -> None:
    verify_api_key(settings, x_api_key, request.url.path)
