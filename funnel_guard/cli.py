"""
Command line entry point: diagnose funnel CSV exports.

    funnel-guard --events events.csv --changes changes.csv [--format table|json]
                 [--baseline-days N] [--current-days N] [--min-drop X]

Exit codes:
    0  no critical break
    1  at least one critical break (usable as a CI / cron alert)
    2  invalid arguments, unreadable input, or invalid thresholds

The report goes to stdout; logs go to stderr.
"""

import argparse
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from funnel_guard.models import BreakSeverity, DiagnosisResult, OutputFormat
from funnel_guard.services.diagnosis import run_diagnosis
from funnel_guard.services.report import format_table_report
from funnel_guard.utils.dates import utc_now

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CRITICAL_BREAK = 1
EXIT_ERROR = 2

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='funnel-guard',
        description='Detect funnel conversion breaks and rank their likely causes'
    )
    parser.add_argument('--events', required=True, help='Path to events CSV file')
    parser.add_argument('--changes', required=True, help='Path to changes CSV file')
    parser.add_argument(
        '--format',
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.TABLE.value,
        help='Output format (default: table)'
    )
    parser.add_argument('--baseline-days', type=int, help='Baseline window in days (default: 14)')
    parser.add_argument('--current-days', type=int, help='Current window in days (default: 3)')
    parser.add_argument(
        '--min-drop',
        type=float,
        help='Minimum relative drop threshold (default: 0.15)'
    )
    parser.add_argument(
        '--log-level',
        type=str.upper,
        choices=LOG_LEVELS,
        default='WARNING',
        help='Log level for stderr (default: WARNING)'
    )
    return parser


def has_critical_break(result: DiagnosisResult) -> bool:
    return any(d.break_.severity == BreakSeverity.CRITICAL for d in result.diagnoses)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the CLI.

    Args:
        argv: Arguments without the program name; defaults to sys.argv[1:].

    Returns:
        Process exit code. argparse itself exits with 2 on bad arguments.
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    detector_overrides = {
        'baselineWindowDays': args.baseline_days,
        'currentWindowDays': args.current_days,
        'minRelativeDrop': args.min_drop,
    }

    try:
        result = run_diagnosis(args.events, args.changes, break_detector_config=detector_overrides)
    except (OSError, ValidationError) as e:
        logger.debug("Diagnosis run failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.format == OutputFormat.JSON.value:
        print(result.model_dump_json(by_alias=True, indent=2))
    else:
        print(format_table_report(result, utc_now()))

    return EXIT_CRITICAL_BREAK if has_critical_break(result) else EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
