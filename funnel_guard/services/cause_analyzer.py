"""
Cause Attribution Service.

For every detected break, ranks the recorded changes that plausibly explain
it and turns the ranking into a diagnosis with a narrative summary.

Eligibility:
    A change is scored for a break only when
        - change.funnelId equals break.funnelId or is the wildcard "*", and
        - 0 <= (break.detectedDate - change.date) <= maxTemporalDistanceDays.
    Future-dated, funnel-mismatched, and too-old changes are never scored.

Scoring (unweighted components, all in [0, 1] except the bonus):
    - temporal: exp(-0.5 * gap_days); 0 days -> 1.0, 1 -> 0.6065, 3 -> 0.2231
    - category: CATEGORY_STAGE_RELEVANCE[(category, "from->to")], 0.3 if absent
    - severity: (clamp(severity, 1, 5) - 1) / 4
    - stage match: 0.2 when affectedStages contains fromStage or toStage

    confidence = clamp01(temporal * temporalWeight + category * categoryWeight
                         + severity * severityWeight + bonus * stageMatchWeight)

Status:
    - UNKNOWN: no candidate at or above minConfidenceThreshold
    - IDENTIFIED: top candidate confidence >= 0.6
    - UNCERTAIN: otherwise

Scores are never rounded. Rounding happens only when the summary is rendered.
The generation timestamp comes from an injected clock.

Usage:
    from funnel_guard.services.cause_analyzer import analyze_causes

    diagnoses = analyze_causes(breaks, changes, {"maxTemporalDistanceDays": 5})
"""

import logging
import math
from types import MappingProxyType
from typing import Iterable, List, Mapping, Sequence, Tuple

from funnel_guard.models import (
    Break,
    CauseAnalyzerConfig,
    CauseAnalyzerOverrides,
    CauseCandidate,
    Change,
    ChangeCategory,
    Diagnosis,
    DiagnosisStatus,
    FunnelStage,
    ScoreBreakdown,
    WILDCARD_FUNNEL_ID,
    resolve_cause_analyzer_config,
    transition_key,
)
from funnel_guard.utils.dates import Clock, days_diff, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Decay rate of the temporal score per day between change and break
TEMPORAL_DECAY_RATE: float = 0.5

# Relevance used when a (category, transition) cell is missing
DEFAULT_CATEGORY_RELEVANCE: float = 0.3

# Unweighted bonus when the change names one of the break's stages
STAGE_MATCH_BONUS: float = 0.2

# Top confidence needed for an IDENTIFIED diagnosis
IDENTIFIED_CONFIDENCE: float = 0.6

MIN_CHANGE_SEVERITY: int = 1
MAX_CHANGE_SEVERITY: int = 5


def _relevance_row(
    category: ChangeCategory,
    impression_click: float,
    click_landing: float,
    landing_lead: float,
    lead_purchase: float
) -> List[Tuple[Tuple[ChangeCategory, str], float]]:
    return [
        ((category, "impression->click"), impression_click),
        ((category, "click->landing"), click_landing),
        ((category, "landing->lead"), landing_lead),
        ((category, "lead->purchase"), lead_purchase),
    ]


# How strongly each change category tends to affect each transition.
# 6 categories x 4 transitions = 24 cells, read-only.
CATEGORY_STAGE_RELEVANCE: Mapping[Tuple[ChangeCategory, str], float] = MappingProxyType(dict(
    _relevance_row(ChangeCategory.AD, 0.95, 0.60, 0.20, 0.10)
    + _relevance_row(ChangeCategory.SITE, 0.05, 0.90, 0.85, 0.70)
    + _relevance_row(ChangeCategory.EXTERNAL, 0.50, 0.30, 0.40, 0.60)
    + _relevance_row(ChangeCategory.TRACKING, 0.80, 0.80, 0.60, 0.40)
    + _relevance_row(ChangeCategory.PRICING, 0.05, 0.10, 0.50, 0.95)
    + _relevance_row(ChangeCategory.AUDIENCE, 0.85, 0.70, 0.50, 0.30)
))


# =============================================================================
# Component Scores
# =============================================================================


def calculate_temporal_score(gap_days: int, max_distance_days: int) -> float:
    """
    Exponential recency score for a change ``gap_days`` before the break.

    Returns 0.0 outside [0, max_distance_days].
    """
    if gap_days < 0 or gap_days > max_distance_days:
        return 0.0
    return math.exp(-TEMPORAL_DECAY_RATE * gap_days)


def calculate_category_relevance(
    category: ChangeCategory,
    from_stage: FunnelStage,
    to_stage: FunnelStage
) -> float:
    """Relevance of a change category to a transition (0.3 when untabulated)."""
    key = (ChangeCategory(category), transition_key(from_stage, to_stage))
    return CATEGORY_STAGE_RELEVANCE.get(key, DEFAULT_CATEGORY_RELEVANCE)


def calculate_severity_score(severity: int) -> float:
    """Linear severity score: 1 -> 0.0, 3 -> 0.5, 5 -> 1.0."""
    clamped = min(MAX_CHANGE_SEVERITY, max(MIN_CHANGE_SEVERITY, severity))
    return (clamped - MIN_CHANGE_SEVERITY) / (MAX_CHANGE_SEVERITY - MIN_CHANGE_SEVERITY)


def calculate_stage_match_bonus(
    affected_stages: Sequence[str],
    from_stage: FunnelStage,
    to_stage: FunnelStage
) -> float:
    """STAGE_MATCH_BONUS when the change names either stage of the break."""
    if not affected_stages:
        return 0.0
    stage_names = {FunnelStage(from_stage).value, FunnelStage(to_stage).value}
    if any(stage in stage_names for stage in affected_stages):
        return STAGE_MATCH_BONUS
    return 0.0


# =============================================================================
# Candidate Selection and Scoring
# =============================================================================


def is_candidate_change(change: Change, brk: Break, config: CauseAnalyzerConfig) -> bool:
    """Funnel match (or wildcard) and change dated within the lookback window."""
    if change.funnelId != brk.funnelId and change.funnelId != WILDCARD_FUNNEL_ID:
        return False
    gap = days_diff(change.date, brk.detectedDate)
    return 0 <= gap <= config.maxTemporalDistanceDays


def score_candidate(change: Change, brk: Break, config: CauseAnalyzerConfig) -> CauseCandidate:
    """
    Score one eligible change against one break.

    Example:
        Same-day SITE change, severity 4, affecting 'landing', on a
        click->landing break:
            1.0 * 0.40 + 0.90 * 0.30 + 0.75 * 0.20 + 0.2 * 0.10 = 0.84
    """
    gap = days_diff(change.date, brk.detectedDate)

    temporal_score = calculate_temporal_score(gap, config.maxTemporalDistanceDays)
    category_score = calculate_category_relevance(change.category, brk.fromStage, brk.toStage)
    severity_score = calculate_severity_score(change.severity)
    stage_bonus = calculate_stage_match_bonus(
        change.affectedStages or [], brk.fromStage, brk.toStage
    )

    weighted = (
        temporal_score * config.temporalWeight
        + category_score * config.categoryWeight
        + severity_score * config.severityWeight
        + stage_bonus * config.stageMatchWeight
    )
    confidence = min(1.0, max(0.0, weighted))

    return CauseCandidate(
        changeId=change.id or "",
        changeDescription=change.description,
        changeCategory=change.category,
        changeDate=change.date,
        changeSeverity=change.severity,
        confidence=confidence,
        scoreBreakdown=ScoreBreakdown(
            temporalScore=temporal_score,
            categoryRelevanceScore=category_score,
            severityScore=severity_score,
            stageMatchBonus=stage_bonus
        )
    )


def determine_status(causes: Sequence[CauseCandidate]) -> DiagnosisStatus:
    """Status from the ranked candidates (highest confidence first)."""
    if not causes:
        return DiagnosisStatus.UNKNOWN
    if causes[0].confidence >= IDENTIFIED_CONFIDENCE:
        return DiagnosisStatus.IDENTIFIED
    return DiagnosisStatus.UNCERTAIN


def generate_summary(
    brk: Break,
    causes: Sequence[CauseCandidate],
    status: DiagnosisStatus
) -> str:
    """
    One-paragraph narrative for a diagnosis.

    Always states severity, relative drop, funnel, transition and date, then
    the top cause (if any) with its confidence.
    """
    drop_pct = f"{brk.relativeDrop * 100:.1f}"
    transition = f"{brk.fromStage.value} -> {brk.toStage.value}"
    header = (
        f"[{brk.severity.value.upper()}] {drop_pct}% conversion drop detected in "
        f"\"{brk.funnelId}\" at {transition} on {brk.detectedDate.isoformat()}."
    )

    if status == DiagnosisStatus.UNKNOWN:
        return f"{header} No candidate causes found within the analysis window."

    top = causes[0]
    confidence_pct = f"{top.confidence * 100:.0f}"
    cause_text = (
        f"\"{top.changeDescription}\" ({top.changeCategory.value}, "
        f"{top.changeDate.isoformat()})."
    )

    if status == DiagnosisStatus.IDENTIFIED:
        return f"{header} Most likely cause ({confidence_pct}% confidence): {cause_text}"

    return (
        f"{header} Possible cause ({confidence_pct}% confidence): {cause_text} "
        f"Low confidence -- manual investigation recommended."
    )


def diagnose_break(
    brk: Break,
    changes: Sequence[Change],
    config: CauseAnalyzerConfig,
    clock: Clock = utc_now
) -> Diagnosis:
    """Build the diagnosis of a single break."""
    scored = [
        score_candidate(change, brk, config)
        for change in changes
        if is_candidate_change(change, brk, config)
    ]
    # sorted() is stable, so equal confidences keep input order
    causes = sorted(
        (c for c in scored if c.confidence >= config.minConfidenceThreshold),
        key=lambda c: c.confidence,
        reverse=True
    )

    status = determine_status(causes)

    return Diagnosis(
        generatedAt=clock(),
        break_=brk,
        causes=causes,
        diagnosisStatus=status,
        summary=generate_summary(brk, causes, status)
    )


# =============================================================================
# Main Attribution Function
# =============================================================================


def analyze_causes(
    breaks: Iterable[Break],
    changes: Iterable[Change],
    config: CauseAnalyzerOverrides = None,
    clock: Clock = utc_now
) -> List[Diagnosis]:
    """
    Diagnose every break against the recorded changes.

    Args:
        breaks: Breaks from detect_breaks.
        changes: All recorded changes; filtering happens per break.
        config: CauseAnalyzerConfig or a mapping of overrides merged onto the
            defaults.
        clock: Callable returning the generation timestamp.

    Returns:
        One Diagnosis per break, in break order.

    Raises:
        pydantic.ValidationError: If config overrides are invalid.
    """
    cfg = resolve_cause_analyzer_config(config)
    change_list = list(changes)

    diagnoses = [diagnose_break(brk, change_list, cfg, clock) for brk in breaks]

    identified = sum(1 for d in diagnoses if d.diagnosisStatus == DiagnosisStatus.IDENTIFIED)
    logger.info(
        f"Cause analysis: {len(diagnoses)} diagnoses, {identified} identified, "
        f"{len(change_list)} changes considered"
    )

    return diagnoses
