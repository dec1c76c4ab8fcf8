"""
Tests for settings loading and the database pool lifecycle.
"""

from unittest.mock import AsyncMock, patch

import pytest

from funnel_guard.core import database
from funnel_guard.core.config import Settings, get_settings
from funnel_guard.core.database import (
    DatabaseNotConfiguredError,
    close_db,
    init_db,
    is_db_configured,
)
from funnel_guard.models import BreakDetectorConfig, CauseAnalyzerConfig


# =============================================================================
# SETTINGS
# =============================================================================


class TestSettings:
    """Environment-driven configuration."""

    def test_defaults_match_pipeline_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv('FUNNEL_GUARD_DATABASE_URL', raising=False)
        settings = Settings(_env_file=None)

        assert settings.database_url is None
        assert settings.log_level == 'INFO'
        assert settings.break_detector_config() == BreakDetectorConfig()
        assert settings.cause_analyzer_config() == CauseAnalyzerConfig()

    def test_environment_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv('FUNNEL_GUARD_MIN_Z_SCORE', '2.5')
        monkeypatch.setenv('FUNNEL_GUARD_MAX_TEMPORAL_DISTANCE_DAYS', '3')

        settings = Settings(_env_file=None)

        assert settings.break_detector_config().minZScore == 2.5
        assert settings.cause_analyzer_config().maxTemporalDistanceDays == 3

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_invalid_default_surfaces_when_building_config(self) -> None:
        settings = Settings(_env_file=None, baseline_window_days=0)

        with pytest.raises(ValueError):
            settings.break_detector_config()


# =============================================================================
# DATABASE POOL
# =============================================================================


class TestDatabasePool:
    """Pool singleton lifecycle."""

    def test_is_db_configured(self, monkeypatch) -> None:
        monkeypatch.setenv('FUNNEL_GUARD_DATABASE_URL', 'postgresql://localhost/db')
        assert is_db_configured()

        get_settings.cache_clear()
        monkeypatch.setenv('FUNNEL_GUARD_DATABASE_URL', '')
        assert not is_db_configured()

    @pytest.mark.asyncio
    async def test_init_without_url_raises(self, monkeypatch) -> None:
        monkeypatch.setenv('FUNNEL_GUARD_DATABASE_URL', '')
        monkeypatch.setattr(database, '_pool', None)

        with pytest.raises(DatabaseNotConfiguredError):
            await init_db()

    @pytest.mark.asyncio
    async def test_init_creates_pool_once(self, monkeypatch, mock_db_pool) -> None:
        monkeypatch.setenv('FUNNEL_GUARD_DATABASE_URL', 'postgresql://localhost/db')
        monkeypatch.setattr(database, '_pool', None)

        with patch('funnel_guard.core.database.asyncpg.create_pool',
                   new=AsyncMock(return_value=mock_db_pool)) as create_pool:
            first = await init_db()
            second = await init_db()

        assert first is second is mock_db_pool
        create_pool.assert_awaited_once_with(
            dsn='postgresql://localhost/db', min_size=2, max_size=10, command_timeout=60
        )

        await close_db()
        mock_db_pool.close.assert_awaited_once()
        assert database._pool is None

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, monkeypatch) -> None:
        monkeypatch.setattr(database, '_pool', None)

        await close_db()
        await close_db()
