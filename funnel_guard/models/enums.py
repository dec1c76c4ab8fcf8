"""
Enumeration definitions for the Funnel Guard diagnosis engine.

All enums inherit from both `str` and `Enum` so that they serialize as their
lowercase string tokens in Pydantic models, JSON output, and database rows.
Downstream consumers match on these exact spellings, so values must never be
renamed.

Besides the enums, this module owns the funnel stage order. The pipeline order
is declared exactly once (STAGE_ORDER); the stage -> position mapping and the
adjacent transitions are derived from it, so adding a stage touches one place.
"""

from enum import Enum
from typing import Dict, Tuple


class FunnelStage(str, Enum):
    """
    One step of the user journey.

    Values: 'impression', 'click', 'landing', 'lead', 'purchase'

    Declaration order is irrelevant; pipeline order comes from STAGE_ORDER.
    """
    IMPRESSION = "impression"
    CLICK = "click"
    LANDING = "landing"
    LEAD = "lead"
    PURCHASE = "purchase"


class ChangeCategory(str, Enum):
    """
    Kind of externally recorded change.

    - ad: Creative, bid, or targeting change on an ad platform
    - site: Website or landing page edit
    - external: Market event, seasonality, competitor action
    - tracking: Pixel, tag, or analytics instrumentation change
    - pricing: Price, discount, or offer change
    - audience: Audience definition or segment change
    """
    AD = "ad"
    SITE = "site"
    EXTERNAL = "external"
    TRACKING = "tracking"
    PRICING = "pricing"
    AUDIENCE = "audience"


class BreakSeverity(str, Enum):
    """
    Severity of a detected conversion break.

    - critical: relative drop > 40% or |z| > 3.0
    - significant: relative drop > 20% or |z| > 2.0
    - warning: passed detection thresholds only
    """
    WARNING = "warning"
    SIGNIFICANT = "significant"
    CRITICAL = "critical"


class DiagnosisStatus(str, Enum):
    """
    Outcome of cause attribution for one break.

    - identified: Top candidate confidence >= 0.6
    - uncertain: Candidates exist but none reaches 0.6
    - unknown: No candidate survived filtering
    """
    IDENTIFIED = "identified"
    UNCERTAIN = "uncertain"
    UNKNOWN = "unknown"


class OutputFormat(str, Enum):
    """Report formats supported by the command-line interface."""
    TABLE = "table"
    JSON = "json"


# =============================================================================
# Stage Ordering
# =============================================================================

# Pipeline order of the funnel. Everything positional derives from this tuple.
STAGE_ORDER: Tuple[FunnelStage, ...] = (
    FunnelStage.IMPRESSION,
    FunnelStage.CLICK,
    FunnelStage.LANDING,
    FunnelStage.LEAD,
    FunnelStage.PURCHASE,
)

# Total stage -> position mapping (0 = top of funnel)
STAGE_INDEX: Dict[FunnelStage, int] = {
    stage: position for position, stage in enumerate(STAGE_ORDER)
}

# Adjacent (fromStage, toStage) pairs in pipeline order
STAGE_TRANSITIONS: Tuple[Tuple[FunnelStage, FunnelStage], ...] = tuple(
    zip(STAGE_ORDER[:-1], STAGE_ORDER[1:])
)

# Funnel id on a change that applies to every funnel
WILDCARD_FUNNEL_ID: str = "*"


def transition_key(from_stage: FunnelStage, to_stage: FunnelStage) -> str:
    """
    Render a stage pair as its display/lookup key, e.g. 'click->landing'.
    """
    return f"{FunnelStage(from_stage).value}->{FunnelStage(to_stage).value}"
