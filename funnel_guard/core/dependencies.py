"""
FastAPI dependency injection for the Funnel Guard API.

Key Dependencies Provided:
- get_settings_dependency / SettingsDep: the cached Settings singleton
- require_database / DatabaseDep: guard for routes that need storage; answers
  503 when no database is configured

Usage:
    @router.post("/events")
    async def ingest_events(body: EventBatch, _db: DatabaseDep) -> IngestResponse:
        ...
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status

from funnel_guard.core.config import Settings, get_settings
from funnel_guard.core.database import is_db_configured


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton.

    Thin wrapper around get_settings() so tests can override it with
    app.dependency_overrides or pass a Settings instance directly.
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# Storage Guard
# =============================================================================

def require_database(settings: SettingsDep) -> Settings:
    """
    Fail fast with 503 when the storage routes are called in stateless mode.

    Raises:
        HTTPException: 503 if FUNNEL_GUARD_DATABASE_URL is not set.
    """
    if not settings.database_url:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage is not configured (set FUNNEL_GUARD_DATABASE_URL)"
        )
    return settings


DatabaseDep = Annotated[Settings, Depends(require_database)]


__all__ = [
    'get_settings_dependency',
    'SettingsDep',
    'require_database',
    'DatabaseDep',
    'is_db_configured',
]
