"""
Pydantic models for the Funnel Guard diagnosis engine.

This module provides type-safe data validation and serialization for the
pipeline's inputs (events, changes), its derived entities (snapshots,
conversion rates, breaks, cause candidates, diagnoses), its configuration,
and the run result returned to the CLI and API.

Field names are camelCase because they are the wire format: the JSON emitted
by `DiagnosisResult.model_dump_json(by_alias=True)` is consumed as-is by
downstream storage and presentation layers. The one alias is `Diagnosis.break_`,
serialized as "break".

Input facts and derived entities are frozen. Derived entities are rebuilt on
every run and never mutated after construction.

All models use Pydantic v2 syntax.
"""

from datetime import datetime, date as DateType
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from funnel_guard.models.enums import (
    BreakSeverity,
    ChangeCategory,
    DiagnosisStatus,
    FunnelStage,
)


# =============================================================================
# Input Facts
# =============================================================================


class Event(BaseModel):
    """
    Event count observed at one funnel stage on one day.

    Several events may share (funnelId, date, stage), e.g. one per traffic
    source. They are summed during snapshot aggregation, never overwritten.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "date": "2025-01-15",
                "funnelId": "spring-sale",
                "stage": "click",
                "count": 1200,
                "source": "meta"
            }
        }
    )

    id: Optional[str] = Field(
        default=None,
        description="Storage identifier, set when loaded from the database"
    )
    date: DateType = Field(
        ...,
        description="Calendar day the events were counted"
    )
    funnelId: str = Field(
        ...,
        min_length=1,
        description="Funnel (campaign/product) identifier"
    )
    stage: FunnelStage = Field(
        ...,
        description="Funnel stage the count belongs to"
    )
    count: int = Field(
        ...,
        ge=0,
        description="Number of events"
    )
    source: Optional[str] = Field(
        default=None,
        description="Traffic source or platform that reported the count"
    )


class Change(BaseModel):
    """
    Externally recorded change that may explain a conversion break.

    A funnelId of "*" applies the change to every funnel.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "date": "2025-01-21",
                "funnelId": "spring-sale",
                "category": "site",
                "description": "New landing page template deployed",
                "severity": 4,
                "affectedStages": ["landing"]
            }
        }
    )

    id: Optional[str] = Field(
        default=None,
        description="Storage identifier, set when loaded from the database"
    )
    date: DateType = Field(
        ...,
        description="Calendar day the change went live"
    )
    funnelId: str = Field(
        ...,
        min_length=1,
        description="Funnel identifier or '*' for all funnels"
    )
    category: ChangeCategory = Field(
        ...,
        description="Kind of change"
    )
    description: str = Field(
        ...,
        description="Human readable description"
    )
    severity: int = Field(
        ...,
        ge=1,
        le=5,
        description="Expected impact, 1 (minor) to 5 (major)"
    )
    affectedStages: Optional[List[str]] = Field(
        default=None,
        description="Stage names the change is known to touch"
    )


# =============================================================================
# Derived Entities
# =============================================================================


class FunnelSnapshot(BaseModel):
    """Total count at every stage for one funnel on one day (0 when unseen)."""
    model_config = ConfigDict(frozen=True)

    date: DateType
    funnelId: str
    stageCounts: Dict[FunnelStage, int] = Field(
        ...,
        description="Count per stage, all five stages present"
    )


class StageConversion(BaseModel):
    """
    Conversion between two adjacent stages.

    rate is 0.0 when fromCount is 0. That is a divide-by-zero guard, not a
    claim that nobody converted.
    """
    model_config = ConfigDict(frozen=True)

    fromStage: FunnelStage
    toStage: FunnelStage
    rate: float = Field(..., ge=0.0)
    fromCount: int = Field(..., ge=0)
    toCount: int = Field(..., ge=0)


class ConversionRates(BaseModel):
    """The four adjacent-stage conversions of one snapshot, in pipeline order."""
    model_config = ConfigDict(frozen=True)

    date: DateType
    funnelId: str
    rates: List[StageConversion] = Field(default_factory=list)


class Break(BaseModel):
    """
    Statistically significant, sustained drop in one stage-to-stage rate.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "funnelId": "spring-sale",
                "fromStage": "click",
                "toStage": "landing",
                "detectedDate": "2025-01-21",
                "baselineRate": 0.75,
                "currentRate": 0.3333,
                "absoluteDrop": 0.4167,
                "relativeDrop": 0.5556,
                "zScore": 41.67,
                "severity": "critical"
            }
        }
    )

    id: Optional[str] = Field(
        default=None,
        description="Storage identifier, set once persisted"
    )
    funnelId: str
    fromStage: FunnelStage
    toStage: FunnelStage
    detectedDate: DateType = Field(
        ...,
        description="Last day of the current window that triggered detection"
    )
    baselineRate: float = Field(..., description="Mean rate of the baseline window")
    currentRate: float = Field(..., description="Mean rate of the current window")
    absoluteDrop: float = Field(..., description="baselineRate - currentRate")
    relativeDrop: float = Field(..., description="absoluteDrop / baselineRate")
    zScore: float = Field(..., description="absoluteDrop / effective baseline std dev")
    severity: BreakSeverity


class ScoreBreakdown(BaseModel):
    """Unweighted component scores behind a cause candidate's confidence."""
    model_config = ConfigDict(frozen=True)

    temporalScore: float = Field(..., ge=0.0, le=1.0)
    categoryRelevanceScore: float = Field(..., ge=0.0, le=1.0)
    severityScore: float = Field(..., ge=0.0, le=1.0)
    stageMatchBonus: float = Field(..., ge=0.0)


class CauseCandidate(BaseModel):
    """Scored link between one break and one recorded change."""
    model_config = ConfigDict(frozen=True)

    changeId: str = Field(
        default="",
        description="Identifier of the change, empty when not persisted"
    )
    changeDescription: str
    changeCategory: ChangeCategory
    changeDate: DateType
    changeSeverity: int
    confidence: float = Field(..., ge=0.0, le=1.0)
    scoreBreakdown: ScoreBreakdown


class Diagnosis(BaseModel):
    """
    Full output for one break: the break, ranked causes, status, and summary.

    The break is stored on `break_` and serialized under the "break" key.
    Always dump with `by_alias=True`.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = Field(
        default=None,
        description="Storage identifier, set once persisted"
    )
    generatedAt: datetime
    break_: Break = Field(..., alias="break")
    causes: List[CauseCandidate] = Field(
        default_factory=list,
        description="Candidates ordered by confidence, highest first"
    )
    diagnosisStatus: DiagnosisStatus
    summary: str


# =============================================================================
# Pipeline Configuration
# =============================================================================


class BreakDetectorConfig(BaseModel):
    """
    Thresholds for sliding-window break detection.

    The baseline window sits immediately before the current window and does
    not overlap it.
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    baselineWindowDays: int = Field(
        default=14,
        ge=1,
        description="Length of the baseline (reference) window in days"
    )
    currentWindowDays: int = Field(
        default=3,
        ge=1,
        description="Length of the most recent window in days"
    )
    minRelativeDrop: float = Field(
        default=0.15,
        ge=0.0,
        description="Minimum relative drop for a break"
    )
    minZScore: float = Field(
        default=1.5,
        ge=0.0,
        description="Minimum |z-score| for a break"
    )
    minBaselineDataPoints: int = Field(
        default=7,
        ge=1,
        description="Minimum number of days present in the baseline window"
    )


class CauseAnalyzerConfig(BaseModel):
    """Weights and cut-offs for cause attribution."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    maxTemporalDistanceDays: int = Field(
        default=7,
        ge=0,
        description="Oldest change (days before the break) still considered"
    )
    temporalWeight: float = Field(default=0.40, ge=0.0)
    categoryWeight: float = Field(default=0.30, ge=0.0)
    severityWeight: float = Field(default=0.20, ge=0.0)
    stageMatchWeight: float = Field(default=0.10, ge=0.0)
    minConfidenceThreshold: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Candidates below this confidence are discarded"
    )


# Partial override accepted by the services: a full model or a mapping of
# field names onto the defaults.
BreakDetectorOverrides = Union[BreakDetectorConfig, Mapping[str, Any], None]
CauseAnalyzerOverrides = Union[CauseAnalyzerConfig, Mapping[str, Any], None]


def resolve_break_detector_config(
    overrides: BreakDetectorOverrides = None
) -> BreakDetectorConfig:
    """
    Merge partial overrides onto the default BreakDetectorConfig.

    Keys mapped to None are ignored so callers can pass optional CLI values
    straight through.

    Raises:
        pydantic.ValidationError: On unknown keys or out-of-range values.
    """
    if isinstance(overrides, BreakDetectorConfig):
        return overrides
    values = {k: v for k, v in (overrides or {}).items() if v is not None}
    return BreakDetectorConfig(**values)


def resolve_cause_analyzer_config(
    overrides: CauseAnalyzerOverrides = None
) -> CauseAnalyzerConfig:
    """Merge partial overrides onto the default CauseAnalyzerConfig."""
    if isinstance(overrides, CauseAnalyzerConfig):
        return overrides
    values = {k: v for k, v in (overrides or {}).items() if v is not None}
    return CauseAnalyzerConfig(**values)


# =============================================================================
# Ingestion and Run Result Models
# =============================================================================


class LoadError(BaseModel):
    """
    Non-fatal ingestion error tied to a line of the source file.

    Line 1 is the header, so the first data row is line 2.
    """
    line: int = Field(
        ...,
        ge=1,
        description="1-based line number in the source file"
    )
    message: str = Field(
        ...,
        description="Error message"
    )
    field: Optional[str] = Field(
        default=None,
        description="Column that failed validation, when a single one did"
    )


class EventLoadResult(BaseModel):
    """Valid events and per-line errors from one events file."""
    events: List[Event] = Field(default_factory=list)
    errors: List[LoadError] = Field(default_factory=list)


class ChangeLoadResult(BaseModel):
    """Valid changes and per-line errors from one changes file."""
    changes: List[Change] = Field(default_factory=list)
    errors: List[LoadError] = Field(default_factory=list)


class RunMetadata(BaseModel):
    """Counters and timing for one diagnosis run."""
    eventsLoaded: int = Field(..., ge=0)
    changesLoaded: int = Field(..., ge=0)
    breaksDetected: int = Field(..., ge=0)
    loadErrors: List[LoadError] = Field(default_factory=list)
    executionTimeMs: float = Field(..., ge=0.0)


class DiagnosisResult(BaseModel):
    """
    Result of one diagnosis run.

    Serialize with `model_dump_json(by_alias=True)` to keep the "break" key.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "diagnoses": [],
                "metadata": {
                    "eventsLoaded": 115,
                    "changesLoaded": 3,
                    "breaksDetected": 0,
                    "loadErrors": [],
                    "executionTimeMs": 4.2
                }
            }
        }
    )

    diagnoses: List[Diagnosis] = Field(default_factory=list)
    metadata: RunMetadata
