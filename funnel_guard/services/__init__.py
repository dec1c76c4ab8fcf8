"""
Funnel Guard Services Module

Business logic of the diagnosis engine. The three pipeline stages are pure
and stateless; the repository is the only module that touches storage.

Services:
- funnel_analyzer: Daily snapshots and stage-to-stage conversion rates
- break_detector: Sliding-window detection of sustained conversion drops
- cause_analyzer: Scoring and ranking of recorded changes per break
- ingestion: CSV loading of events and changes with per-line errors
- diagnosis: End-to-end orchestration and run metadata
- report: Plain-text report rendering
- repository: PostgreSQL persistence of inputs and diagnoses
"""

# =============================================================================
# Pipeline Stages
# =============================================================================

from funnel_guard.services.funnel_analyzer import (
    build_snapshots,
    calculate_conversion_rates,
)

from funnel_guard.services.break_detector import (
    detect_breaks,
    calculate_window_stats,
    classify_severity,
    deduplicate_consecutive_breaks,
)

from funnel_guard.services.cause_analyzer import (
    analyze_causes,
    score_candidate,
    determine_status,
    generate_summary,
    CATEGORY_STAGE_RELEVANCE,
)

# =============================================================================
# Ingestion, Orchestration, Reporting
# =============================================================================

from funnel_guard.services.ingestion import (
    load_events_from_csv,
    load_changes_from_csv,
)

from funnel_guard.services.diagnosis import (
    run_diagnosis,
    run_diagnosis_from_data,
)

from funnel_guard.services.report import format_table_report

# =============================================================================
# Storage
# =============================================================================

from funnel_guard.services.repository import (
    ensure_schema,
    insert_events,
    find_events_by_funnel,
    find_events_by_date_range,
    insert_changes,
    find_changes_by_funnel,
    find_changes_by_date_range,
    persist_diagnoses,
)


__all__ = [
    # Funnel analyzer
    'build_snapshots',
    'calculate_conversion_rates',
    # Break detector
    'detect_breaks',
    'calculate_window_stats',
    'classify_severity',
    'deduplicate_consecutive_breaks',
    # Cause analyzer
    'analyze_causes',
    'score_candidate',
    'determine_status',
    'generate_summary',
    'CATEGORY_STAGE_RELEVANCE',
    # Ingestion
    'load_events_from_csv',
    'load_changes_from_csv',
    # Orchestration and reporting
    'run_diagnosis',
    'run_diagnosis_from_data',
    'format_table_report',
    # Storage
    'ensure_schema',
    'insert_events',
    'find_events_by_funnel',
    'find_events_by_date_range',
    'insert_changes',
    'find_changes_by_funnel',
    'find_changes_by_date_range',
    'persist_diagnoses',
]
