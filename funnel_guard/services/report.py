"""
Plain-text rendering of a DiagnosisResult for terminals and log files.
"""

from datetime import datetime
from typing import List

from funnel_guard.models import CauseCandidate, Diagnosis, DiagnosisResult

REPORT_WIDTH: int = 56
MAX_LOAD_ERRORS_SHOWN: int = 10
MAX_CAUSES_SHOWN: int = 5

LINE = "=" * REPORT_WIDTH
DIVIDER = "-" * REPORT_WIDTH


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def _format_cause(rank: int, cause: CauseCandidate) -> List[str]:
    bd = cause.scoreBreakdown
    sign = "+" if bd.stageMatchBonus > 0 else ""
    return [
        f"  #{rank} [{cause.confidence * 100:.0f}% confidence] \"{cause.changeDescription}\"",
        f"     Category: {cause.changeCategory.value} | Date: {cause.changeDate.isoformat()} "
        f"| Severity: {cause.changeSeverity}/5",
        f"     Scores: temporal={bd.temporalScore:.3f} category={bd.categoryRelevanceScore:.2f} "
        f"severity={bd.severityScore:.2f} stage_match={sign}{bd.stageMatchBonus:.1f}",
    ]


def _format_diagnosis(number: int, diagnosis: Diagnosis) -> List[str]:
    brk = diagnosis.break_
    lines = [
        "",
        DIVIDER,
        f"BREAK #{number} [{brk.severity.value.upper()}]",
        f"  Funnel:     {brk.funnelId}",
        f"  Transition: {brk.fromStage.value} -> {brk.toStage.value}",
        f"  Date:       {brk.detectedDate.isoformat()}",
        f"  Baseline:   {_pct(brk.baselineRate)}",
        f"  Current:    {_pct(brk.currentRate)}",
        f"  Drop:       -{_pct(brk.absoluteDrop)} absolute / -{_pct(brk.relativeDrop)} relative",
        f"  Z-Score:    {brk.zScore:.2f}",
    ]

    if diagnosis.causes:
        lines.extend(["", "  LIKELY CAUSES:"])
        for rank, cause in enumerate(diagnosis.causes[:MAX_CAUSES_SHOWN], start=1):
            lines.extend(_format_cause(rank, cause))

    lines.extend([
        "",
        f"  STATUS: {diagnosis.diagnosisStatus.value.upper()}",
        f"  SUMMARY: {diagnosis.summary}",
    ])
    return lines


def format_table_report(result: DiagnosisResult, generated_at: datetime) -> str:
    """
    Render the human-readable diagnosis report.

    Args:
        result: Output of run_diagnosis.
        generated_at: Timestamp printed in the header.

    Returns:
        The report as a single newline-joined string.
    """
    meta = result.metadata
    lines: List[str] = [
        "",
        LINE,
        " FUNNEL GUARD - Diagnosis Report",
        f" Generated: {generated_at.isoformat()}",
        LINE,
        "",
        "DATA SUMMARY",
        f"  Events loaded:  {meta.eventsLoaded}",
        f"  Changes loaded: {meta.changesLoaded}",
        f"  Load errors:    {len(meta.loadErrors)}",
        f"  Breaks found:   {meta.breaksDetected}",
        f"  Execution time: {meta.executionTimeMs:.1f}ms",
    ]

    if meta.loadErrors:
        lines.extend(["", "  LOAD ERRORS:"])
        for err in meta.loadErrors[:MAX_LOAD_ERRORS_SHOWN]:
            lines.append(f"    Line {err.line}: {err.message}")
        hidden = len(meta.loadErrors) - MAX_LOAD_ERRORS_SHOWN
        if hidden > 0:
            lines.append(f"    ... and {hidden} more")

    if not result.diagnoses:
        lines.extend([
            "",
            DIVIDER,
            "  No breaks detected. Funnel performance is stable.",
            LINE,
            "",
        ])
        return "\n".join(lines)

    for number, diagnosis in enumerate(result.diagnoses, start=1):
        lines.extend(_format_diagnosis(number, diagnosis))

    lines.extend(["", LINE, "END OF REPORT", LINE, ""])
    return "\n".join(lines)
