"""
Events and Changes CSV Ingestion Service

This module loads the two run inputs of the diagnosis engine from CSV files
and turns them into typed records.

File Layouts:
- Events: date, funnel_id, stage, count[, source]
- Changes: date, funnel_id, category, description, severity[, affected_stages]

Key Features:
- Required column validation (a missing column fails the whole file)
- Per-row validation of dates, enum tokens (case-insensitive), and integers
- Partial load: valid rows proceed, invalid rows are dropped and reported
  as line-tagged LoadError entries, never silently defaulted
- Line numbers refer to the file: the header is line 1, the first data row
  is line 2

Error Handling:
- Row problems are returned as data, not raised
- An empty file yields no rows and no errors
- A file pandas cannot tokenize yields a single header-line error
- A missing or unreadable file raises (FileNotFoundError / OSError); the
  caller decides how fatal that is
"""

from pathlib import Path
from typing import Any, Dict, IO, List, Optional, Tuple, Union
import logging

import pandas as pd

from funnel_guard.models import (
    Change,
    ChangeCategory,
    ChangeLoadResult,
    Event,
    EventLoadResult,
    FunnelStage,
    LoadError,
)
from funnel_guard.utils.dates import is_valid_date, parse_date

# Configure module logger
logger = logging.getLogger(__name__)

CsvSource = Union[str, Path, IO[str], IO[bytes]]

# =============================================================================
# CONSTANTS - Column Layouts
# =============================================================================

EVENT_REQUIRED_COLUMNS: List[str] = [
    'date',
    'funnel_id',
    'stage',
    'count',
]

EVENT_OPTIONAL_COLUMNS: List[str] = ['source']

CHANGE_REQUIRED_COLUMNS: List[str] = [
    'date',
    'funnel_id',
    'category',
    'description',
    'severity',
]

CHANGE_OPTIONAL_COLUMNS: List[str] = ['affected_stages']

# Separator inside the affected_stages cell
AFFECTED_STAGES_SEPARATOR: str = ';'

# Header occupies line 1
FIRST_DATA_LINE: int = 2

VALID_STAGES = {stage.value for stage in FunnelStage}
VALID_CATEGORIES = {category.value for category in ChangeCategory}


# =============================================================================
# CSV PARSING
# =============================================================================

def read_csv_frame(source: CsvSource) -> pd.DataFrame:
    """
    Read a CSV into a DataFrame of trimmed strings.

    Every cell is read as text so that validation, not pandas type inference,
    decides what a bad value is. Blank lines are skipped; missing cells
    become empty strings; column names are lowercased.

    Raises:
        FileNotFoundError: If ``source`` is a path that does not exist.
    """
    try:
        df = pd.read_csv(
            source,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()

    df = df.fillna('')
    df.columns = df.columns.str.strip().str.lower()
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()

    return df


def validate_columns(df: pd.DataFrame, required_columns: List[str]) -> List[LoadError]:
    """
    Check that all required columns are present.

    Returns:
        One LoadError (on the header line) per missing column.
    """
    errors: List[LoadError] = []
    present = set(df.columns)

    for col in required_columns:
        if col not in present:
            errors.append(LoadError(
                line=1,
                field=col,
                message=f"Required column '{col}' is missing"
            ))

    return errors


def _missing_fields(row: Dict[str, Any], required_columns: List[str]) -> List[str]:
    return [col for col in required_columns if not row.get(col, '')]


def _parse_failure(error: Exception) -> LoadError:
    return LoadError(
        line=1,
        field='file',
        message=f"Failed to parse CSV file: {error}"
    )


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# =============================================================================
# ROW PARSING
# =============================================================================

def parse_event_row(row: Dict[str, Any], line: int) -> Tuple[Optional[Event], Optional[LoadError]]:
    """
    Validate one events row.

    Returns:
        (Event, None) for a valid row, (None, LoadError) otherwise. Checks run
        in column order and stop at the first failure.
    """
    missing = _missing_fields(row, EVENT_REQUIRED_COLUMNS)
    if missing:
        return None, LoadError(
            line=line,
            message=f"Missing required field(s): {', '.join(missing)}"
        )

    raw_date = row['date']
    if not is_valid_date(raw_date):
        return None, LoadError(line=line, field='date', message=f"Invalid date format: {raw_date}")

    stage = row['stage'].lower()
    if stage not in VALID_STAGES:
        return None, LoadError(line=line, field='stage', message=f"Invalid stage: {row['stage']}")

    count = _parse_int(row['count'])
    if count is None or count < 0:
        return None, LoadError(line=line, field='count', message=f"Invalid count: {row['count']}")

    event = Event(
        date=parse_date(raw_date),
        funnelId=row['funnel_id'],
        stage=FunnelStage(stage),
        count=count,
        source=row.get('source') or None
    )
    return event, None


def parse_affected_stages(value: str) -> Optional[List[str]]:
    """
    Split a ``;``-separated affected_stages cell.

    Entries are trimmed and lowercased; empties are dropped. Returns None for
    a blank cell.
    """
    if not value:
        return None
    stages = [s.strip().lower() for s in value.split(AFFECTED_STAGES_SEPARATOR)]
    stages = [s for s in stages if s]
    return stages or None


def parse_change_row(row: Dict[str, Any], line: int) -> Tuple[Optional[Change], Optional[LoadError]]:
    """Validate one changes row. Same contract as parse_event_row."""
    missing = _missing_fields(row, CHANGE_REQUIRED_COLUMNS)
    if missing:
        return None, LoadError(
            line=line,
            message=f"Missing required field(s): {', '.join(missing)}"
        )

    raw_date = row['date']
    if not is_valid_date(raw_date):
        return None, LoadError(line=line, field='date', message=f"Invalid date format: {raw_date}")

    category = row['category'].lower()
    if category not in VALID_CATEGORIES:
        return None, LoadError(
            line=line,
            field='category',
            message=f"Invalid category: {row['category']}"
        )

    severity = _parse_int(row['severity'])
    if severity is None or severity < 1 or severity > 5:
        return None, LoadError(
            line=line,
            field='severity',
            message=f"Invalid severity (must be 1-5): {row['severity']}"
        )

    change = Change(
        date=parse_date(raw_date),
        funnelId=row['funnel_id'],
        category=ChangeCategory(category),
        description=row['description'],
        severity=severity,
        affectedStages=parse_affected_stages(row.get('affected_stages', ''))
    )
    return change, None


# =============================================================================
# LOADERS
# =============================================================================

def load_events_from_csv(source: CsvSource) -> EventLoadResult:
    """
    Load funnel events from a CSV file or buffer.

    Args:
        source: Path or open file-like object.

    Returns:
        EventLoadResult with the valid events and one LoadError per rejected
        row (or per missing column, in which case no rows are loaded).

    Raises:
        FileNotFoundError: If the path does not exist.
    """
    try:
        df = read_csv_frame(source)
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        logger.warning(f"Events CSV could not be parsed: {e}")
        return EventLoadResult(errors=[_parse_failure(e)])

    if len(df.columns) == 0:
        logger.info("Events CSV is empty")
        return EventLoadResult()

    column_errors = validate_columns(df, EVENT_REQUIRED_COLUMNS)
    if column_errors:
        logger.warning(f"Events CSV rejected: {len(column_errors)} required columns missing")
        return EventLoadResult(errors=column_errors)

    if df.empty:
        logger.info("Events CSV contains no data rows")
        return EventLoadResult()

    events: List[Event] = []
    errors: List[LoadError] = []

    for offset, row in enumerate(df.to_dict(orient='records')):
        event, error = parse_event_row(row, FIRST_DATA_LINE + offset)
        if error is not None:
            errors.append(error)
        else:
            events.append(event)

    logger.info(f"Loaded {len(events)} events ({len(errors)} rows rejected)")
    return EventLoadResult(events=events, errors=errors)


def load_changes_from_csv(source: CsvSource) -> ChangeLoadResult:
    """
    Load recorded changes from a CSV file or buffer.

    Same contract as load_events_from_csv.
    """
    try:
        df = read_csv_frame(source)
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        logger.warning(f"Changes CSV could not be parsed: {e}")
        return ChangeLoadResult(errors=[_parse_failure(e)])

    if len(df.columns) == 0:
        logger.info("Changes CSV is empty")
        return ChangeLoadResult()

    column_errors = validate_columns(df, CHANGE_REQUIRED_COLUMNS)
    if column_errors:
        logger.warning(f"Changes CSV rejected: {len(column_errors)} required columns missing")
        return ChangeLoadResult(errors=column_errors)

    if df.empty:
        logger.info("Changes CSV contains no data rows")
        return ChangeLoadResult()

    changes: List[Change] = []
    errors: List[LoadError] = []

    for offset, row in enumerate(df.to_dict(orient='records')):
        change, error = parse_change_row(row, FIRST_DATA_LINE + offset)
        if error is not None:
            errors.append(error)
        else:
            changes.append(change)

    logger.info(f"Loaded {len(changes)} changes ({len(errors)} rows rejected)")
    return ChangeLoadResult(changes=changes, errors=errors)
