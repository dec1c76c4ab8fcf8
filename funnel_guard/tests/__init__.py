'''
Funnel Guard Test Suite

Test Modules:
-------------
- test_funnel_analyzer.py: Daily snapshots and stage-to-stage conversion rates
- test_break_detector.py: Rolling baseline/current windows, thresholds, severity
- test_cause_analyzer.py: Temporal, category, severity and stage-match scoring
- test_ingestion.py: Events and changes CSV loading with line-tagged errors
- test_diagnosis.py: End-to-end orchestration and the plain-text report
- test_repository.py: PostgreSQL storage against a mocked asyncpg pool
- test_api.py: FastAPI route handlers, dependencies and lifespan
- test_cli.py: funnel-guard command line exit codes and output formats
- test_config.py: Settings and database pool lifecycle
- test_dates.py: Calendar-day helpers

Running Tests:
--------------
    pip install -e ".[test]"
    pytest funnel_guard/tests -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
