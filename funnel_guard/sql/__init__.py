"""
SQL layer for Funnel Guard storage.

Submodules:
    schema: Idempotent DDL for events, changes, breaks, diagnoses, and
            cause_candidates.
    funnel_queries: Parameterized ($n) queries used by
                    funnel_guard.services.repository.

Example usage:
    from funnel_guard.sql import get_schema_statements, get_event_upsert_query
"""

# =============================================================================
# SCHEMA
# =============================================================================

from funnel_guard.sql.schema import get_schema_statements

# =============================================================================
# QUERIES
# =============================================================================

from funnel_guard.sql.funnel_queries import (
    get_break_upsert_query,
    get_cause_candidate_insert_query,
    get_change_insert_query,
    get_changes_by_funnel_query,
    get_diagnosis_insert_query,
    get_event_upsert_query,
    get_events_by_funnel_query,
)

__all__ = [
    'get_schema_statements',
    'get_event_upsert_query',
    'get_events_by_funnel_query',
    'get_change_insert_query',
    'get_changes_by_funnel_query',
    'get_break_upsert_query',
    'get_diagnosis_insert_query',
    'get_cause_candidate_insert_query',
]
