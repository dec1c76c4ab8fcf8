"""
PostgreSQL schema for Funnel Guard storage.

Tables:
- events: daily stage counts, unique per (date, funnel_id, stage, source)
- changes: recorded changes; affected_stages is a ';'-joined list
- breaks: detected breaks, unique per (funnel_id, from_stage, to_stage, detected_date)
- diagnoses: one per break diagnosis run
- cause_candidates: ranked candidates of a diagnosis

Every statement is idempotent (IF NOT EXISTS), so ensure_schema() may run on
each startup.
"""

from typing import List


EVENTS_TABLE = """
CREATE TABLE IF NOT EXISTS events (
    id          BIGSERIAL PRIMARY KEY,
    date        DATE      NOT NULL,
    funnel_id   TEXT      NOT NULL,
    stage       TEXT      NOT NULL
                CHECK (stage IN ('impression', 'click', 'landing', 'lead', 'purchase')),
    count       INTEGER   NOT NULL CHECK (count >= 0),
    source      TEXT      NOT NULL DEFAULT '',
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (date, funnel_id, stage, source)
)
"""

CHANGES_TABLE = """
CREATE TABLE IF NOT EXISTS changes (
    id              BIGSERIAL PRIMARY KEY,
    date            DATE    NOT NULL,
    funnel_id       TEXT    NOT NULL,
    category        TEXT    NOT NULL
                    CHECK (category IN ('ad', 'site', 'external', 'tracking', 'pricing', 'audience')),
    description     TEXT    NOT NULL,
    severity        INTEGER NOT NULL CHECK (severity BETWEEN 1 AND 5),
    affected_stages TEXT,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

BREAKS_TABLE = """
CREATE TABLE IF NOT EXISTS breaks (
    id              BIGSERIAL PRIMARY KEY,
    funnel_id       TEXT    NOT NULL,
    from_stage      TEXT    NOT NULL,
    to_stage        TEXT    NOT NULL,
    detected_date   DATE    NOT NULL,
    baseline_rate   DOUBLE PRECISION NOT NULL,
    current_rate    DOUBLE PRECISION NOT NULL,
    absolute_drop   DOUBLE PRECISION NOT NULL,
    relative_drop   DOUBLE PRECISION NOT NULL,
    z_score         DOUBLE PRECISION NOT NULL,
    severity        TEXT    NOT NULL
                    CHECK (severity IN ('warning', 'significant', 'critical')),
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (funnel_id, from_stage, to_stage, detected_date)
)
"""

DIAGNOSES_TABLE = """
CREATE TABLE IF NOT EXISTS diagnoses (
    id                BIGSERIAL PRIMARY KEY,
    break_id          BIGINT  NOT NULL REFERENCES breaks(id),
    diagnosis_status  TEXT    NOT NULL
                      CHECK (diagnosis_status IN ('identified', 'uncertain', 'unknown')),
    summary           TEXT    NOT NULL,
    generated_at      TIMESTAMPTZ NOT NULL,
    created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

CAUSE_CANDIDATES_TABLE = """
CREATE TABLE IF NOT EXISTS cause_candidates (
    id                BIGSERIAL PRIMARY KEY,
    diagnosis_id      BIGINT  NOT NULL REFERENCES diagnoses(id),
    change_id         BIGINT  REFERENCES changes(id),
    confidence        DOUBLE PRECISION NOT NULL,
    temporal_score    DOUBLE PRECISION NOT NULL,
    category_score    DOUBLE PRECISION NOT NULL,
    severity_score    DOUBLE PRECISION NOT NULL,
    stage_match_bonus DOUBLE PRECISION NOT NULL,
    rank_position     INTEGER NOT NULL
)
"""

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_events_funnel_date ON events (funnel_id, date)",
    "CREATE INDEX IF NOT EXISTS idx_events_date ON events (date)",
    "CREATE INDEX IF NOT EXISTS idx_changes_funnel_date ON changes (funnel_id, date)",
    "CREATE INDEX IF NOT EXISTS idx_cause_candidates_diagnosis ON cause_candidates (diagnosis_id)",
]


def get_schema_statements() -> List[str]:
    """
    DDL statements in dependency order (referenced tables first).

    Returns:
        List of statements to execute one by one inside a transaction.
    """
    return [
        EVENTS_TABLE,
        CHANGES_TABLE,
        BREAKS_TABLE,
        DIAGNOSES_TABLE,
        CAUSE_CANDIDATES_TABLE,
        *INDEXES,
    ]
