"""
FastAPI router for storing pipeline inputs.

Implements POST /events (upsert daily stage counts) and POST /changes
(register changes). Both require a configured database.
"""

import logging
from typing import List

import asyncpg
from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel, Field

from funnel_guard.core.dependencies import DatabaseDep
from funnel_guard.models import Change, Event
from funnel_guard.services.repository import insert_changes, insert_events

logger = logging.getLogger(__name__)


# =============================================================================
# Local Pydantic Models
# =============================================================================

class EventBatch(BaseModel):
    """Request body for POST /events."""
    events: List[Event] = Field(..., min_length=1)


class ChangeBatch(BaseModel):
    """Request body for POST /changes."""
    changes: List[Change] = Field(..., min_length=1)


class IngestResponse(BaseModel):
    """Number of records written, plus new ids where storage assigns them."""
    stored: int = Field(..., ge=0)
    ids: List[str] = Field(default_factory=list)


# =============================================================================
# Router Definition
# =============================================================================

router = APIRouter()


@router.post("/events", response_model=IngestResponse)
async def ingest_events(
    _db: DatabaseDep,
    batch: EventBatch = Body(...),
) -> IngestResponse:
    """Upsert events; a repeated (date, funnel, stage, source) replaces the count."""
    try:
        stored = await insert_events(batch.events)
    except (asyncpg.PostgresError, OSError) as e:
        logger.exception("Error storing events")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to store events: {str(e)}"
        )
    return IngestResponse(stored=stored)


@router.post("/changes", response_model=IngestResponse)
async def register_changes(
    _db: DatabaseDep,
    batch: ChangeBatch = Body(...),
) -> IngestResponse:
    """Register changes and return their new ids."""
    try:
        ids = await insert_changes(batch.changes)
    except (asyncpg.PostgresError, OSError) as e:
        logger.exception("Error storing changes")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to store changes: {str(e)}"
        )
    return IngestResponse(stored=len(ids), ids=ids)
