"""
Core infrastructure package for Funnel Guard.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- FastAPI dependency injection utilities

Re-exports key components so callers can write:

    from funnel_guard.core import get_settings, get_db_pool, SettingsDep
"""

# =============================================================================
# Re-exports from funnel_guard.core.config
# =============================================================================
from funnel_guard.core.config import Settings, get_settings

# =============================================================================
# Re-exports from funnel_guard.core.database
# =============================================================================
from funnel_guard.core.database import (
    DatabaseNotConfiguredError,
    close_db,
    get_db_pool,
    init_db,
    is_db_configured,
)

# =============================================================================
# Re-exports from funnel_guard.core.dependencies
# =============================================================================
from funnel_guard.core.dependencies import (
    DatabaseDep,
    SettingsDep,
    get_settings_dependency,
    require_database,
)

__all__ = [
    # Configuration
    'Settings',
    'get_settings',
    # Database
    'DatabaseNotConfiguredError',
    'init_db',
    'close_db',
    'get_db_pool',
    'is_db_configured',
    # Dependencies
    'get_settings_dependency',
    'SettingsDep',
    'require_database',
    'DatabaseDep',
]
