"""
FastAPI router for running diagnoses.

Implements:
- POST /diagnosis/run: diagnose events and changes sent in the request body.
  Stateless, works without a database.
- GET /diagnosis/{funnel_id}: diagnose the stored events and changes of one
  funnel, optionally limited to a date range, optionally persisting the
  resulting diagnoses.

Responses serialize Diagnosis.break_ under the "break" key.
"""

import logging
from datetime import date
from typing import List, Optional

import asyncpg
from fastapi import APIRouter, Body, HTTPException, Query
from pydantic import BaseModel, Field

from funnel_guard.core.dependencies import DatabaseDep, SettingsDep
from funnel_guard.models import (
    BreakDetectorConfig,
    CauseAnalyzerConfig,
    Change,
    DiagnosisResult,
    Event,
)
from funnel_guard.services.diagnosis import run_diagnosis_from_data
from funnel_guard.services.repository import (
    find_changes_by_date_range,
    find_changes_by_funnel,
    find_events_by_date_range,
    find_events_by_funnel,
    persist_diagnoses,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Local Pydantic Models for API Requests and Responses
# =============================================================================

class DiagnosisRequest(BaseModel):
    """Request body for a stateless diagnosis run."""
    events: List[Event] = Field(
        default_factory=list,
        description="Daily stage counts"
    )
    changes: List[Change] = Field(
        default_factory=list,
        description="Recorded changes, '*' funnelId for all funnels"
    )
    breakDetectorConfig: Optional[BreakDetectorConfig] = Field(
        default=None,
        description="Detector overrides; omitted fields keep their defaults"
    )
    causeAnalyzerConfig: Optional[CauseAnalyzerConfig] = Field(
        default=None,
        description="Analyzer overrides; omitted fields keep their defaults"
    )


class StoredDiagnosisResponse(BaseModel):
    """Diagnosis of stored data for one funnel."""
    funnelId: str
    start: Optional[date] = None
    end: Optional[date] = None
    persisted: int = Field(
        default=0,
        ge=0,
        description="Number of diagnoses written to storage"
    )
    result: DiagnosisResult


# =============================================================================
# Router Definition
# =============================================================================

router = APIRouter()


@router.post("/run", response_model=DiagnosisResult)
async def run_diagnosis_endpoint(
    request: DiagnosisRequest = Body(...),
) -> DiagnosisResult:
    """
    Run the full pipeline on the posted records.

    Returns:
        DiagnosisResult with one diagnosis per detected break.
    """
    result = run_diagnosis_from_data(
        request.events,
        request.changes,
        break_detector_config=request.breakDetectorConfig,
        cause_analyzer_config=request.causeAnalyzerConfig
    )
    logger.info(
        f"Stateless diagnosis: {result.metadata.breaksDetected} breaks "
        f"from {result.metadata.eventsLoaded} events"
    )
    return result


@router.get("/{funnel_id}", response_model=StoredDiagnosisResponse)
async def diagnose_stored_funnel(
    funnel_id: str,
    settings: SettingsDep,
    _db: DatabaseDep,
    start: Optional[date] = Query(default=None, description="First day (inclusive)"),
    end: Optional[date] = Query(default=None, description="Last day (inclusive)"),
    persist: bool = Query(default=False, description="Store the resulting diagnoses"),
) -> StoredDiagnosisResponse:
    """
    Diagnose the stored events and changes of one funnel.

    start and end must be given together. Detector and analyzer thresholds
    come from the settings.

    Raises:
        HTTPException: 400 for an incomplete or inverted date range, 500 on
            storage errors, 503 without a configured database.
    """
    if (start is None) != (end is None):
        raise HTTPException(
            status_code=400,
            detail="start and end must be provided together"
        )
    if start is not None and end is not None and start > end:
        raise HTTPException(
            status_code=400,
            detail=f"start ({start}) must not be after end ({end})"
        )

    try:
        if start is not None and end is not None:
            events = await find_events_by_date_range(funnel_id, start, end)
            changes = await find_changes_by_date_range(funnel_id, start, end)
        else:
            events = await find_events_by_funnel(funnel_id)
            changes = await find_changes_by_funnel(funnel_id)

        result = run_diagnosis_from_data(
            events,
            changes,
            break_detector_config=settings.break_detector_config(),
            cause_analyzer_config=settings.cause_analyzer_config()
        )

        persisted = await persist_diagnoses(result.diagnoses) if persist else 0

    except (asyncpg.PostgresError, OSError) as e:
        logger.exception(f"Error diagnosing stored funnel {funnel_id}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to diagnose funnel {funnel_id}: {str(e)}"
        )

    return StoredDiagnosisResponse(
        funnelId=funnel_id,
        start=start,
        end=end,
        persisted=persisted,
        result=result
    )
