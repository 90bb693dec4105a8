"""
FastAPI dependency utilities for injecting configuration and the session identity.
"""

import uuid
from functools import lru_cache

from fastapi import Depends, Request, Response

from resume_achievements.core.config import AppSettings, get_settings


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


SettingsDependency = Depends(get_app_settings)


def get_session_id(
    request: Request,
    response: Response,
    settings: AppSettings = SettingsDependency,
) -> str:
    """Return the caller's session id, issuing a cookie when there is none."""
    cookie_name = settings.session.cookie_name
    session_id = request.cookies.get(cookie_name)
    if not session_id:
        session_id = uuid.uuid4().hex
        response.set_cookie(
            cookie_name,
            session_id,
            max_age=settings.session.max_age_seconds,
            httponly=True,
            samesite="lax",
        )
    return session_id


__all__ = ["SettingsDependency", "get_app_settings", "get_session_id"]
