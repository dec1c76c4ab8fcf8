"""
Diagnosis Orchestration Service.

Wires the pipeline together for one run:

    load events + changes -> build_snapshots -> calculate_conversion_rates
        -> detect_breaks -> analyze_causes -> DiagnosisResult

The orchestrator owns run metadata (record counts, breaks detected, load
errors, wall-clock time). Ingestion errors are collected, never fatal; an
input with zero valid rows produces an empty result. A missing input file is
the one hard failure and propagates to the caller.

Usage:
    from funnel_guard.services.diagnosis import run_diagnosis

    result = run_diagnosis("events.csv", "changes.csv",
                           break_detector_config={"baselineWindowDays": 21})
    print(result.model_dump_json(by_alias=True, indent=2))
"""

import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional, Union

from funnel_guard.models import (
    BreakDetectorOverrides,
    CauseAnalyzerOverrides,
    Change,
    DiagnosisResult,
    Event,
    LoadError,
    RunMetadata,
)
from funnel_guard.services.break_detector import detect_breaks
from funnel_guard.services.cause_analyzer import analyze_causes
from funnel_guard.services.funnel_analyzer import build_snapshots, calculate_conversion_rates
from funnel_guard.services.ingestion import load_changes_from_csv, load_events_from_csv
from funnel_guard.utils.dates import Clock, utc_now

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


def _run_pipeline(
    events: List[Event],
    changes: List[Change],
    load_errors: List[LoadError],
    started: float,
    break_detector_config: BreakDetectorOverrides,
    cause_analyzer_config: CauseAnalyzerOverrides,
    clock: Clock
) -> DiagnosisResult:
    snapshots = build_snapshots(events)
    conversion_rates = calculate_conversion_rates(snapshots)
    breaks = detect_breaks(conversion_rates, break_detector_config)
    diagnoses = analyze_causes(breaks, changes, cause_analyzer_config, clock=clock)

    logger.info(
        f"Diagnosis run complete: {len(events)} events, {len(changes)} changes, "
        f"{len(snapshots)} snapshots, {len(breaks)} breaks, {len(load_errors)} load errors"
    )

    return DiagnosisResult(
        diagnoses=diagnoses,
        metadata=RunMetadata(
            eventsLoaded=len(events),
            changesLoaded=len(changes),
            breaksDetected=len(breaks),
            loadErrors=load_errors,
            executionTimeMs=_elapsed_ms(started)
        )
    )


def run_diagnosis(
    events_path: Union[str, Path],
    changes_path: Union[str, Path],
    break_detector_config: BreakDetectorOverrides = None,
    cause_analyzer_config: CauseAnalyzerOverrides = None,
    clock: Clock = utc_now
) -> DiagnosisResult:
    """
    Run a full diagnosis from two CSV files.

    Args:
        events_path: Events CSV (date, funnel_id, stage, count[, source]).
        changes_path: Changes CSV (date, funnel_id, category, description,
            severity[, affected_stages]).
        break_detector_config: Optional partial detector overrides.
        cause_analyzer_config: Optional partial analyzer overrides.
        clock: Timestamp source for Diagnosis.generatedAt.

    Returns:
        DiagnosisResult whose metadata.loadErrors holds the row errors of
        both files, events first.

    Raises:
        FileNotFoundError: If either file does not exist.
        pydantic.ValidationError: If config overrides are invalid.
    """
    started = time.perf_counter()

    event_result = load_events_from_csv(events_path)
    change_result = load_changes_from_csv(changes_path)

    load_errors: List[LoadError] = [*event_result.errors, *change_result.errors]
    if load_errors:
        logger.warning(f"{len(load_errors)} input rows rejected during load")

    return _run_pipeline(
        event_result.events,
        change_result.changes,
        load_errors,
        started,
        break_detector_config,
        cause_analyzer_config,
        clock
    )


def run_diagnosis_from_data(
    events: Iterable[Event],
    changes: Iterable[Change],
    break_detector_config: BreakDetectorOverrides = None,
    cause_analyzer_config: CauseAnalyzerOverrides = None,
    clock: Clock = utc_now,
    load_errors: Optional[List[LoadError]] = None
) -> DiagnosisResult:
    """
    Run a diagnosis on records already in memory (API payloads, database).

    load_errors lets callers that did their own validation report it in the
    result metadata; it defaults to none.
    """
    started = time.perf_counter()

    return _run_pipeline(
        list(events),
        list(changes),
        list(load_errors or []),
        started,
        break_detector_config,
        cause_analyzer_config,
        clock
    )
