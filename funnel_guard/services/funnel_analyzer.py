"""
Funnel Snapshot Aggregation Service.

Turns raw per-stage event counts into one ordered daily snapshot per
(funnel, date) and derives the sequential stage-to-stage conversion rates the
break detector consumes.

Aggregation Rules:
    - Events sharing (funnelId, date, stage) are summed. Several sources may
      report the same stage on the same day.
    - Stages without any event on a day count as 0.
    - Snapshots are ordered by funnelId, then date.

Conversion Rules:
    - rate = toCount / fromCount for each adjacent stage pair, in pipeline
      order (STAGE_TRANSITIONS).
    - rate = 0.0 when fromCount is 0. This only guards the division; it does
      not mean the stage truly converted nobody.

Usage:
    from funnel_guard.services.funnel_analyzer import (
        build_snapshots,
        calculate_conversion_rates,
    )

    snapshots = build_snapshots(events)
    rates = calculate_conversion_rates(snapshots)
"""

from collections import defaultdict
from datetime import date
from typing import DefaultDict, Dict, Iterable, List, Tuple

from funnel_guard.models import (
    ConversionRates,
    Event,
    FunnelSnapshot,
    FunnelStage,
    StageConversion,
    STAGE_ORDER,
    STAGE_TRANSITIONS,
)


def build_snapshots(events: Iterable[Event]) -> List[FunnelSnapshot]:
    """
    Aggregate events into one snapshot per (funnelId, date).

    Args:
        events: Events in any order. Duplicate (funnel, date, stage) keys are
            summed.

    Returns:
        Snapshots sorted by funnelId then date, each carrying a count for all
        five stages. Empty input returns an empty list.

    Example:
        >>> snaps = build_snapshots([
        ...     Event(date=date(2025, 1, 1), funnelId='f', stage='click', count=10, source='meta'),
        ...     Event(date=date(2025, 1, 1), funnelId='f', stage='click', count=5, source='google'),
        ... ])
        >>> snaps[0].stageCounts[FunnelStage.CLICK]
        15
    """
    grouped: DefaultDict[Tuple[str, date], DefaultDict[FunnelStage, int]] = defaultdict(
        lambda: defaultdict(int)
    )

    for event in events:
        grouped[(event.funnelId, event.date)][event.stage] += event.count

    snapshots: List[FunnelSnapshot] = []
    for (funnel_id, day), stage_counts in sorted(grouped.items(), key=lambda item: item[0]):
        counts: Dict[FunnelStage, int] = {
            stage: stage_counts.get(stage, 0) for stage in STAGE_ORDER
        }
        snapshots.append(FunnelSnapshot(
            date=day,
            funnelId=funnel_id,
            stageCounts=counts
        ))

    return snapshots


def calculate_conversion_rates(snapshots: Iterable[FunnelSnapshot]) -> List[ConversionRates]:
    """
    Compute adjacent-stage conversion rates for every snapshot.

    The output is 1:1 with the input and keeps its order. Each entry holds
    one StageConversion per transition in pipeline order.
    """
    results: List[ConversionRates] = []

    for snapshot in snapshots:
        rates: List[StageConversion] = []
        for from_stage, to_stage in STAGE_TRANSITIONS:
            from_count = snapshot.stageCounts.get(from_stage, 0)
            to_count = snapshot.stageCounts.get(to_stage, 0)
            rate = to_count / from_count if from_count > 0 else 0.0

            rates.append(StageConversion(
                fromStage=from_stage,
                toStage=to_stage,
                rate=rate,
                fromCount=from_count,
                toCount=to_count
            ))

        results.append(ConversionRates(
            date=snapshot.date,
            funnelId=snapshot.funnelId,
            rates=rates
        ))

    return results
