"""
Parameterized PostgreSQL queries for events, changes, and diagnoses.

All queries use asyncpg positional placeholders ($1, $2, ...). Change lookups
always include wildcard ("*") changes, which apply to every funnel.
"""

from funnel_guard.models import WILDCARD_FUNNEL_ID


# =============================================================================
# EVENTS
# =============================================================================

def get_event_upsert_query() -> str:
    """
    Upsert one event; a second report for the same (date, funnel, stage,
    source) replaces the count.

    Parameters: $1 date, $2 funnel_id, $3 stage, $4 count, $5 source ('' for none)
    """
    return """
    INSERT INTO events (date, funnel_id, stage, count, source)
    VALUES ($1, $2, $3, $4, $5)
    ON CONFLICT (date, funnel_id, stage, source)
    DO UPDATE SET count = EXCLUDED.count
    """


def get_events_by_funnel_query(with_date_range: bool = False) -> str:
    """
    Events of one funnel ordered by date, then stage.

    Parameters: $1 funnel_id[, $2 start date, $3 end date (inclusive)]
    """
    date_filter = "AND date BETWEEN $2 AND $3" if with_date_range else ""
    return f"""
    SELECT id, date, funnel_id, stage, count, source
    FROM events
    WHERE funnel_id = $1
    {date_filter}
    ORDER BY date, stage
    """


# =============================================================================
# CHANGES
# =============================================================================

def get_change_insert_query() -> str:
    """
    Insert one change.

    Parameters: $1 date, $2 funnel_id, $3 category, $4 description,
    $5 severity, $6 affected_stages (';'-joined or NULL)
    """
    return """
    INSERT INTO changes (date, funnel_id, category, description, severity, affected_stages)
    VALUES ($1, $2, $3, $4, $5, $6)
    RETURNING id
    """


def get_changes_by_funnel_query(with_date_range: bool = False) -> str:
    """
    Changes of one funnel plus wildcard changes, ordered by date.

    Parameters: $1 funnel_id[, $2 start date, $3 end date (inclusive)]
    """
    date_filter = "AND date BETWEEN $2 AND $3" if with_date_range else ""
    return f"""
    SELECT id, date, funnel_id, category, description, severity, affected_stages
    FROM changes
    WHERE (funnel_id = $1 OR funnel_id = '{WILDCARD_FUNNEL_ID}')
    {date_filter}
    ORDER BY date, id
    """


# =============================================================================
# BREAKS AND DIAGNOSES
# =============================================================================

def get_break_upsert_query() -> str:
    """
    Upsert a break on (funnel_id, from_stage, to_stage, detected_date) and
    return its id.

    Parameters: $1 funnel_id, $2 from_stage, $3 to_stage, $4 detected_date,
    $5 baseline_rate, $6 current_rate, $7 absolute_drop, $8 relative_drop,
    $9 z_score, $10 severity
    """
    return """
    INSERT INTO breaks (
        funnel_id,
        from_stage,
        to_stage,
        detected_date,
        baseline_rate,
        current_rate,
        absolute_drop,
        relative_drop,
        z_score,
        severity
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
    ON CONFLICT (funnel_id, from_stage, to_stage, detected_date)
    DO UPDATE SET
        baseline_rate = EXCLUDED.baseline_rate,
        current_rate = EXCLUDED.current_rate,
        absolute_drop = EXCLUDED.absolute_drop,
        relative_drop = EXCLUDED.relative_drop,
        z_score = EXCLUDED.z_score,
        severity = EXCLUDED.severity
    RETURNING id
    """


def get_diagnosis_insert_query() -> str:
    """
    Insert a diagnosis and return its id.

    Parameters: $1 break_id, $2 diagnosis_status, $3 summary, $4 generated_at
    """
    return """
    INSERT INTO diagnoses (break_id, diagnosis_status, summary, generated_at)
    VALUES ($1, $2, $3, $4)
    RETURNING id
    """


def get_cause_candidate_insert_query() -> str:
    """
    Insert one ranked cause candidate.

    Parameters: $1 diagnosis_id, $2 change_id (NULL when unknown),
    $3 confidence, $4 temporal_score, $5 category_score, $6 severity_score,
    $7 stage_match_bonus, $8 rank_position (1-based)
    """
    return """
    INSERT INTO cause_candidates (
        diagnosis_id,
        change_id,
        confidence,
        temporal_score,
        category_score,
        severity_score,
        stage_match_bonus,
        rank_position
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
    """
