"""
Package initialization file for Funnel Guard models.

Exports all Pydantic schemas, enumerations, and stage-order constants so other
modules can import them from funnel_guard.models directly.

Usage:
    from funnel_guard.models import (
        Event,
        Change,
        FunnelStage,
        STAGE_ORDER,
        Diagnosis,
    )
"""

# =============================================================================
# Enums and stage ordering
# =============================================================================

from funnel_guard.models.enums import (
    FunnelStage,
    ChangeCategory,
    BreakSeverity,
    DiagnosisStatus,
    OutputFormat,
    STAGE_ORDER,
    STAGE_INDEX,
    STAGE_TRANSITIONS,
    WILDCARD_FUNNEL_ID,
    transition_key,
)


# =============================================================================
# Schemas
# =============================================================================

from funnel_guard.models.schemas import (
    # Input facts
    Event,
    Change,
    # Derived entities
    FunnelSnapshot,
    StageConversion,
    ConversionRates,
    Break,
    ScoreBreakdown,
    CauseCandidate,
    Diagnosis,
    # Configuration
    BreakDetectorConfig,
    CauseAnalyzerConfig,
    BreakDetectorOverrides,
    CauseAnalyzerOverrides,
    resolve_break_detector_config,
    resolve_cause_analyzer_config,
    # Ingestion and run results
    LoadError,
    EventLoadResult,
    ChangeLoadResult,
    RunMetadata,
    DiagnosisResult,
)


__all__ = [
    'FunnelStage',
    'ChangeCategory',
    'BreakSeverity',
    'DiagnosisStatus',
    'OutputFormat',
    'STAGE_ORDER',
    'STAGE_INDEX',
    'STAGE_TRANSITIONS',
    'WILDCARD_FUNNEL_ID',
    'transition_key',
    'Event',
    'Change',
    'FunnelSnapshot',
    'StageConversion',
    'ConversionRates',
    'Break',
    'ScoreBreakdown',
    'CauseCandidate',
    'Diagnosis',
    'BreakDetectorConfig',
    'CauseAnalyzerConfig',
    'BreakDetectorOverrides',
    'CauseAnalyzerOverrides',
    'resolve_break_detector_config',
    'resolve_cause_analyzer_config',
    'LoadError',
    'EventLoadResult',
    'ChangeLoadResult',
    'RunMetadata',
    'DiagnosisResult',
]
