"""
Funnel Guard Package.

Funnel regression-diagnosis engine: aggregates daily funnel stage counts,
detects sustained conversion-rate breaks against a trailing baseline, and
ranks recorded changes that plausibly explain each break.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, and dependencies
    - models: Pydantic schemas and enums
    - services: Analytical pipeline, ingestion, persistence, and reporting
    - sql: Parameterized SQL statements
    - utils: Calendar-day helpers

The analytical core (funnel_analyzer, break_detector, cause_analyzer) is pure
and synchronous; I/O lives in ingestion, repository, the CLI and the API.
"""

__version__ = "1.0.0"
