"""
Funnel Guard Storage Repository.

Persists the pipeline inputs (events, changes) and outputs (breaks,
diagnoses, ranked cause candidates) in PostgreSQL through the shared asyncpg
pool.

Storage Rules:
    - Events upsert on (date, funnel_id, stage, source); a missing source is
      stored as '' so the unique key stays total. Re-ingesting a day replaces
      its counts.
    - Changes are append-only. affected_stages is stored ';'-joined.
    - Change lookups for a funnel include wildcard ("*") changes.
    - persist_diagnoses writes everything in one transaction: the break is
      upserted on (funnel_id, from_stage, to_stage, detected_date), then the
      diagnosis and its candidates (rank 1 = highest confidence) are inserted.

Errors:
    asyncpg errors are logged and re-raised. Batch writes are transactional,
    so a failure leaves nothing half-written.

Usage:
    from funnel_guard.services.repository import ensure_schema, insert_events

    await ensure_schema()
    stored = await insert_events(events)
"""

import logging
from datetime import date
from typing import Any, Iterable, List, Optional

import asyncpg

from funnel_guard.core.database import get_db_pool
from funnel_guard.models import (
    Change,
    ChangeCategory,
    Diagnosis,
    Event,
    FunnelStage,
)
from funnel_guard.services.ingestion import AFFECTED_STAGES_SEPARATOR
from funnel_guard.sql import (
    get_break_upsert_query,
    get_cause_candidate_insert_query,
    get_change_insert_query,
    get_changes_by_funnel_query,
    get_diagnosis_insert_query,
    get_event_upsert_query,
    get_events_by_funnel_query,
    get_schema_statements,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Schema
# =============================================================================


async def ensure_schema() -> None:
    """Create all tables and indexes if they do not exist."""
    pool = await get_db_pool()

    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                for statement in get_schema_statements():
                    await conn.execute(statement)
    except asyncpg.PostgresError:
        logger.exception("Failed to create Funnel Guard schema")
        raise

    logger.info("Database schema is up to date")


# =============================================================================
# Row Mapping
# =============================================================================


def _row_to_event(row: Any) -> Event:
    return Event(
        id=str(row['id']),
        date=row['date'],
        funnelId=row['funnel_id'],
        stage=FunnelStage(row['stage']),
        count=row['count'],
        source=row['source'] or None
    )


def _split_affected_stages(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    stages = [s for s in value.split(AFFECTED_STAGES_SEPARATOR) if s]
    return stages or None


def _row_to_change(row: Any) -> Change:
    return Change(
        id=str(row['id']),
        date=row['date'],
        funnelId=row['funnel_id'],
        category=ChangeCategory(row['category']),
        description=row['description'],
        severity=row['severity'],
        affectedStages=_split_affected_stages(row['affected_stages'])
    )


def _change_id_param(change_id: str) -> Optional[int]:
    """Stored change ids are integers; anything else has no row to reference."""
    return int(change_id) if change_id.isdigit() else None


async def _fetch(what: str, query: str, *args: Any) -> List[asyncpg.Record]:
    pool = await get_db_pool()

    try:
        async with pool.acquire() as conn:
            return await conn.fetch(query, *args)
    except asyncpg.PostgresError:
        logger.exception(f"Failed to load {what}")
        raise


# =============================================================================
# Events
# =============================================================================


async def insert_events(events: Iterable[Event]) -> int:
    """
    Upsert events in one transaction.

    Returns:
        Number of events written.
    """
    records = [
        (e.date, e.funnelId, e.stage.value, e.count, e.source or '')
        for e in events
    ]
    if not records:
        return 0

    pool = await get_db_pool()

    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(get_event_upsert_query(), records)
    except asyncpg.PostgresError:
        logger.exception(f"Failed to store {len(records)} events")
        raise

    logger.info(f"Stored {len(records)} events")
    return len(records)


async def find_events_by_funnel(funnel_id: str) -> List[Event]:
    """All stored events of a funnel, ordered by date then stage."""
    rows = await _fetch(f"events of {funnel_id}", get_events_by_funnel_query(), funnel_id)

    return [_row_to_event(row) for row in rows]


async def find_events_by_date_range(funnel_id: str, start: date, end: date) -> List[Event]:
    """Stored events of a funnel with start <= date <= end."""
    rows = await _fetch(
        f"events of {funnel_id} from {start} to {end}",
        get_events_by_funnel_query(with_date_range=True),
        funnel_id,
        start,
        end
    )

    return [_row_to_event(row) for row in rows]


# =============================================================================
# Changes
# =============================================================================


async def insert_changes(changes: Iterable[Change]) -> List[str]:
    """
    Insert changes in one transaction.

    Returns:
        The new change ids, in input order.
    """
    change_list = list(changes)
    if not change_list:
        return []

    pool = await get_db_pool()
    query = get_change_insert_query()
    ids: List[str] = []

    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                for chg in change_list:
                    affected = (
                        AFFECTED_STAGES_SEPARATOR.join(chg.affectedStages)
                        if chg.affectedStages else None
                    )
                    change_id = await conn.fetchval(
                        query,
                        chg.date,
                        chg.funnelId,
                        chg.category.value,
                        chg.description,
                        chg.severity,
                        affected
                    )
                    ids.append(str(change_id))
    except asyncpg.PostgresError:
        logger.exception(f"Failed to store {len(change_list)} changes")
        raise

    logger.info(f"Stored {len(ids)} changes")
    return ids


async def find_changes_by_funnel(funnel_id: str) -> List[Change]:
    """Stored changes of a funnel plus wildcard changes, ordered by date."""
    rows = await _fetch(f"changes of {funnel_id}", get_changes_by_funnel_query(), funnel_id)

    return [_row_to_change(row) for row in rows]


async def find_changes_by_date_range(funnel_id: str, start: date, end: date) -> List[Change]:
    """Funnel and wildcard changes with start <= date <= end."""
    rows = await _fetch(
        f"changes of {funnel_id} from {start} to {end}",
        get_changes_by_funnel_query(with_date_range=True),
        funnel_id,
        start,
        end
    )

    return [_row_to_change(row) for row in rows]


# =============================================================================
# Diagnoses
# =============================================================================


async def persist_diagnoses(diagnoses: Iterable[Diagnosis]) -> int:
    """
    Store diagnoses with their breaks and ranked candidates.

    Returns:
        Number of diagnoses written.
    """
    diagnosis_list = list(diagnoses)
    if not diagnosis_list:
        return 0

    pool = await get_db_pool()
    break_query = get_break_upsert_query()
    diagnosis_query = get_diagnosis_insert_query()
    candidate_query = get_cause_candidate_insert_query()

    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                for diagnosis in diagnosis_list:
                    brk = diagnosis.break_
                    break_id = await conn.fetchval(
                        break_query,
                        brk.funnelId,
                        brk.fromStage.value,
                        brk.toStage.value,
                        brk.detectedDate,
                        brk.baselineRate,
                        brk.currentRate,
                        brk.absoluteDrop,
                        brk.relativeDrop,
                        brk.zScore,
                        brk.severity.value
                    )
                    diagnosis_id = await conn.fetchval(
                        diagnosis_query,
                        break_id,
                        diagnosis.diagnosisStatus.value,
                        diagnosis.summary,
                        diagnosis.generatedAt
                    )
                    candidate_rows = [
                        (
                            diagnosis_id,
                            _change_id_param(cause.changeId),
                            cause.confidence,
                            cause.scoreBreakdown.temporalScore,
                            cause.scoreBreakdown.categoryRelevanceScore,
                            cause.scoreBreakdown.severityScore,
                            cause.scoreBreakdown.stageMatchBonus,
                            rank
                        )
                        for rank, cause in enumerate(diagnosis.causes, start=1)
                    ]
                    if candidate_rows:
                        await conn.executemany(candidate_query, candidate_rows)
    except asyncpg.PostgresError:
        logger.exception(f"Failed to persist {len(diagnosis_list)} diagnoses")
        raise

    logger.info(f"Persisted {len(diagnosis_list)} diagnoses")
    return len(diagnosis_list)
