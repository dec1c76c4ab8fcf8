"""
Conversion Break Detection Service.

Detects statistically significant, sustained drops ("breaks") in the daily
stage-to-stage conversion rates of each funnel. Every (funnel, stage pair)
series is analysed independently.

Algorithm Overview:
    For each candidate detection date d in a series:
        - current window: points with 0 <= (d - point.date) < currentWindowDays
        - baseline window: points with
          currentWindowDays <= (d - point.date) < baselineWindowDays + currentWindowDays
    The two windows never overlap. Missing days simply contribute no point.

    A window pair is skipped when the baseline has fewer than
    minBaselineDataPoints points, the current window is empty, or the
    baseline mean is 0. Otherwise:

        effective_std = max(sample_std(baseline), MIN_EFFECTIVE_STD_DEV)
        absoluteDrop  = baselineMean - currentMean
        relativeDrop  = absoluteDrop / baselineMean
        zScore        = absoluteDrop / effective_std

    and d is flagged when relativeDrop >= minRelativeDrop and
    |zScore| >= minZScore.

Severity (first match wins, strict ">"):
    - CRITICAL: relativeDrop > 0.40 or |zScore| > 3.0
    - SIGNIFICANT: relativeDrop > 0.20 or |zScore| > 2.0
    - WARNING: otherwise

Deduplication:
    A sustained regression flags several consecutive days. Flags for the same
    (funnel, fromStage, toStage) whose dates are at most one day apart form a
    cluster, and each cluster is reported once, as its member with the largest
    |zScore| (first encountered on ties). Clustering looks at flagged dates
    only, not at the calendar.

Dependencies:
    - numpy: mean and sample standard deviation of window rates

Usage:
    from funnel_guard.services.break_detector import detect_breaks

    breaks = detect_breaks(conversion_rates, {"minRelativeDrop": 0.2})
"""

import logging
from collections import defaultdict
from datetime import date
from typing import DefaultDict, Dict, Iterable, List, Tuple

import numpy as np

from funnel_guard.models import (
    Break,
    BreakDetectorConfig,
    BreakDetectorOverrides,
    BreakSeverity,
    ConversionRates,
    FunnelStage,
    STAGE_INDEX,
    STAGE_TRANSITIONS,
    resolve_break_detector_config,
)
from funnel_guard.utils.dates import days_diff

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Floor for the baseline standard deviation. A perfectly flat baseline would
# otherwise turn any wobble into an infinite z-score.
MIN_EFFECTIVE_STD_DEV: float = 0.01

# Severity boundaries, compared with strict ">"
CRITICAL_RELATIVE_DROP: float = 0.40
CRITICAL_Z_SCORE: float = 3.0
SIGNIFICANT_RELATIVE_DROP: float = 0.20
SIGNIFICANT_Z_SCORE: float = 2.0

# Flagged dates at most this many days apart belong to the same cluster
CLUSTER_GAP_DAYS: int = 1

RatePoint = Tuple[date, float]


# =============================================================================
# Window Statistics
# =============================================================================


def calculate_window_stats(rates: List[float]) -> Tuple[float, float]:
    """
    Mean and sample standard deviation (n - 1) of a window of rates.

    Returns:
        Tuple of (mean, std_dev). The mean is 0.0 for an empty window and the
        standard deviation is 0.0 with fewer than two points.

    Example:
        >>> calculate_window_stats([0.7, 0.8])
        (0.75, 0.0707...)
    """
    if len(rates) == 0:
        return (0.0, 0.0)

    values = np.asarray(rates, dtype=np.float64)
    mean_val = float(np.mean(values))

    if len(rates) < 2:
        return (mean_val, 0.0)

    return (mean_val, float(np.std(values, ddof=1)))


def classify_severity(relative_drop: float, z_score: float) -> BreakSeverity:
    """
    Map a relative drop and z-score to a severity.

    Boundaries are strict: a relative drop of exactly 0.40 is SIGNIFICANT
    unless |z_score| exceeds 3.0.
    """
    if relative_drop > CRITICAL_RELATIVE_DROP or abs(z_score) > CRITICAL_Z_SCORE:
        return BreakSeverity.CRITICAL
    if relative_drop > SIGNIFICANT_RELATIVE_DROP or abs(z_score) > SIGNIFICANT_Z_SCORE:
        return BreakSeverity.SIGNIFICANT
    return BreakSeverity.WARNING


# =============================================================================
# Series Extraction
# =============================================================================


def extract_time_series(
    funnel_rates: Iterable[ConversionRates],
    from_stage: FunnelStage,
    to_stage: FunnelStage
) -> List[RatePoint]:
    """
    Build the chronological (date, rate) series of one transition.

    Args:
        funnel_rates: Conversion rates of a single funnel, any order.
        from_stage: Upstream stage of the transition.
        to_stage: Downstream stage of the transition.

    Returns:
        (date, rate) points sorted by date. Entries lacking the transition
        contribute a rate of 0.0.
    """
    series: List[RatePoint] = []

    for conversion in funnel_rates:
        rate = 0.0
        for entry in conversion.rates:
            if entry.fromStage == from_stage and entry.toStage == to_stage:
                rate = entry.rate
                break
        series.append((conversion.date, rate))

    series.sort(key=lambda point: point[0])
    return series


# =============================================================================
# Per-Series Detection
# =============================================================================


def detect_breaks_in_series(
    series: List[RatePoint],
    funnel_id: str,
    from_stage: FunnelStage,
    to_stage: FunnelStage,
    config: BreakDetectorConfig
) -> List[Break]:
    """
    Flag every detection date of one series that passes both thresholds.

    The result is not deduplicated: a multi-day regression yields one flag per
    day. See deduplicate_consecutive_breaks.
    """
    flagged: List[Break] = []
    current_days = config.currentWindowDays
    baseline_limit = config.baselineWindowDays + current_days

    for detection_date, _ in series:
        current_rates: List[float] = []
        baseline_rates: List[float] = []

        for point_date, rate in series:
            gap = days_diff(point_date, detection_date)
            if 0 <= gap < current_days:
                current_rates.append(rate)
            elif current_days <= gap < baseline_limit:
                baseline_rates.append(rate)

        if len(baseline_rates) < config.minBaselineDataPoints:
            continue
        if len(current_rates) == 0:
            continue

        baseline_mean, baseline_std = calculate_window_stats(baseline_rates)
        current_mean, _ = calculate_window_stats(current_rates)

        if baseline_mean == 0:
            logger.debug(
                f"Skipping {funnel_id} {from_stage.value}->{to_stage.value} "
                f"on {detection_date}: zero baseline mean"
            )
            continue

        effective_std = max(baseline_std, MIN_EFFECTIVE_STD_DEV)
        absolute_drop = baseline_mean - current_mean
        relative_drop = absolute_drop / baseline_mean
        z_score = absolute_drop / effective_std

        if relative_drop >= config.minRelativeDrop and abs(z_score) >= config.minZScore:
            flagged.append(Break(
                funnelId=funnel_id,
                fromStage=from_stage,
                toStage=to_stage,
                detectedDate=detection_date,
                baselineRate=baseline_mean,
                currentRate=current_mean,
                absoluteDrop=absolute_drop,
                relativeDrop=relative_drop,
                zScore=z_score,
                severity=classify_severity(relative_drop, z_score)
            ))

    return flagged


# =============================================================================
# Deduplication
# =============================================================================


def pick_peak_break(cluster: List[Break]) -> Break:
    """Member of a cluster with the largest |zScore|; the earliest wins ties."""
    best = cluster[0]
    for candidate in cluster[1:]:
        if abs(candidate.zScore) > abs(best.zScore):
            best = candidate
    return best


def _sort_key(brk: Break) -> Tuple[date, str, int]:
    return (brk.detectedDate, brk.funnelId, STAGE_INDEX[brk.fromStage])


def deduplicate_consecutive_breaks(breaks: List[Break]) -> List[Break]:
    """
    Collapse runs of flags on adjacent days into one break per run.

    Flags are grouped by (funnelId, fromStage, toStage). Within a group,
    dates at most CLUSTER_GAP_DAYS apart chain into one cluster, which is
    reduced to its peak |zScore| member.

    Returns:
        Breaks sorted by detectedDate, then funnelId, then stage position.
    """
    if not breaks:
        return []

    groups: DefaultDict[Tuple[str, FunnelStage, FunnelStage], List[Break]] = defaultdict(list)
    for brk in breaks:
        groups[(brk.funnelId, brk.fromStage, brk.toStage)].append(brk)

    deduplicated: List[Break] = []

    for group_breaks in groups.values():
        ordered = sorted(group_breaks, key=lambda b: b.detectedDate)
        cluster: List[Break] = [ordered[0]]

        for previous, current in zip(ordered, ordered[1:]):
            if days_diff(previous.detectedDate, current.detectedDate) <= CLUSTER_GAP_DAYS:
                cluster.append(current)
            else:
                deduplicated.append(pick_peak_break(cluster))
                cluster = [current]

        deduplicated.append(pick_peak_break(cluster))

    return sorted(deduplicated, key=_sort_key)


# =============================================================================
# Main Detection Function
# =============================================================================


def detect_breaks(
    conversion_rates: Iterable[ConversionRates],
    config: BreakDetectorOverrides = None
) -> List[Break]:
    """
    Find conversion breaks across all funnels and adjacent stage pairs.

    Args:
        conversion_rates: Output of calculate_conversion_rates, any order,
            any number of funnels.
        config: BreakDetectorConfig, or a mapping of overrides merged onto
            the defaults (baselineWindowDays=14, currentWindowDays=3,
            minRelativeDrop=0.15, minZScore=1.5, minBaselineDataPoints=7).

    Returns:
        Deduplicated breaks sorted by detectedDate. Empty input, or funnels
        that never accumulate a qualifying baseline, yield no breaks.

    Raises:
        pydantic.ValidationError: If config overrides are invalid.

    Example:
        >>> rates = calculate_conversion_rates(build_snapshots(events))
        >>> for brk in detect_breaks(rates):
        ...     print(brk.funnelId, brk.fromStage.value, brk.severity.value)
    """
    cfg = resolve_break_detector_config(config)

    by_funnel: Dict[str, List[ConversionRates]] = defaultdict(list)
    for conversion in conversion_rates:
        by_funnel[conversion.funnelId].append(conversion)

    raw_breaks: List[Break] = []

    for funnel_id in sorted(by_funnel):
        funnel_rates = by_funnel[funnel_id]
        for from_stage, to_stage in STAGE_TRANSITIONS:
            series = extract_time_series(funnel_rates, from_stage, to_stage)
            raw_breaks.extend(
                detect_breaks_in_series(series, funnel_id, from_stage, to_stage, cfg)
            )

    breaks = deduplicate_consecutive_breaks(raw_breaks)

    logger.info(
        f"Break detection: {len(breaks)} breaks from {len(raw_breaks)} flagged days "
        f"across {len(by_funnel)} funnels"
    )

    return breaks
