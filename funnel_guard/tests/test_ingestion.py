"""
Test Module for Events and Changes CSV Ingestion.

Validates:
- Required column handling
- Per-row validation of dates, stages, categories, counts, and severities
- Partial loads with line-tagged errors
- Optional columns and affected_stages parsing
- Empty, blank-line, and unparsable input
"""

from datetime import date
from io import StringIO
from pathlib import Path

import pandas as pd
import pytest

from funnel_guard.models import ChangeCategory, FunnelStage
from funnel_guard.services.ingestion import (
    CHANGE_REQUIRED_COLUMNS,
    EVENT_REQUIRED_COLUMNS,
    load_changes_from_csv,
    load_events_from_csv,
    parse_affected_stages,
    read_csv_frame,
    validate_columns,
)


EVENT_HEADER = "date,funnel_id,stage,count,source"
CHANGE_HEADER = "date,funnel_id,category,description,severity,affected_stages"


def csv(*lines: str) -> StringIO:
    return StringIO("\n".join(lines) + "\n")


# =============================================================================
# EVENTS
# =============================================================================


class TestLoadEvents:
    """Events CSV loading."""

    def test_valid_file(self) -> None:
        result = load_events_from_csv(csv(
            EVENT_HEADER,
            "2025-01-01,spring-sale,impression,10000,meta",
            "2025-01-01,spring-sale,click,1200,meta",
            "2025-01-01,spring-sale,landing,900,meta",
        ))

        assert result.errors == []
        assert len(result.events) == 3
        first = result.events[0]
        assert first.date == date(2025, 1, 1)
        assert first.funnelId == 'spring-sale'
        assert first.stage == FunnelStage.IMPRESSION
        assert first.count == 10000
        assert first.source == 'meta'

    def test_source_column_is_optional(self) -> None:
        result = load_events_from_csv(csv(
            "date,funnel_id,stage,count",
            "2025-01-01,f,click,5",
        ))

        assert result.errors == []
        assert result.events[0].source is None

    def test_empty_source_is_none(self) -> None:
        result = load_events_from_csv(csv(EVENT_HEADER, "2025-01-01,f,click,5,"))

        assert result.events[0].source is None

    def test_stage_is_case_insensitive(self) -> None:
        result = load_events_from_csv(csv(EVENT_HEADER, "2025-01-01,f,LaNdInG,5,"))

        assert result.events[0].stage == FunnelStage.LANDING

    def test_whitespace_is_trimmed(self) -> None:
        result = load_events_from_csv(csv(
            " date , funnel_id , stage , count ",
            " 2025-01-01 , f , click , 7 ",
        ))

        assert result.errors == []
        assert result.events[0].funnelId == 'f'
        assert result.events[0].count == 7

    @pytest.mark.parametrize("row,field,message", [
        ("2025/01/01,f,click,5,", 'date', "Invalid date format: 2025/01/01"),
        ("2025-02-30,f,click,5,", 'date', "Invalid date format: 2025-02-30"),
        ("2025-01-01,f,checkout,5,", 'stage', "Invalid stage: checkout"),
        ("2025-01-01,f,click,-1,", 'count', "Invalid count: -1"),
        ("2025-01-01,f,click,abc,", 'count', "Invalid count: abc"),
        ("2025-01-01,f,click,1.5,", 'count', "Invalid count: 1.5"),
    ])
    def test_invalid_row(self, row, field, message) -> None:
        result = load_events_from_csv(csv(EVENT_HEADER, row))

        assert result.events == []
        assert len(result.errors) == 1
        assert result.errors[0].line == 2
        assert result.errors[0].field == field
        assert result.errors[0].message == message

    def test_missing_required_field(self) -> None:
        result = load_events_from_csv(csv(EVENT_HEADER, "2025-01-01,,click,5,"))

        assert result.errors[0].message == "Missing required field(s): funnel_id"

    def test_short_row_reports_missing_fields(self) -> None:
        result = load_events_from_csv(csv(EVENT_HEADER, "2025-01-01,f"))

        assert result.errors[0].message == "Missing required field(s): stage, count"

    def test_partial_load_keeps_valid_rows(self) -> None:
        result = load_events_from_csv(csv(
            EVENT_HEADER,
            "2025-01-01,f,click,5,",
            "2025-01-01,f,oops,5,",
            "2025-01-02,f,click,6,",
        ))

        assert [e.count for e in result.events] == [5, 6]
        assert [e.line for e in result.errors] == [3]

    def test_blank_lines_are_skipped(self) -> None:
        result = load_events_from_csv(csv(
            EVENT_HEADER,
            "2025-01-01,f,click,5,",
            "",
            "2025-01-02,f,click,6,",
        ))

        assert len(result.events) == 2
        assert result.errors == []

    def test_missing_column_rejects_file(self) -> None:
        result = load_events_from_csv(csv("date,funnel_id,stage", "2025-01-01,f,click"))

        assert result.events == []
        assert len(result.errors) == 1
        assert result.errors[0].line == 1
        assert result.errors[0].field == 'count'

    def test_empty_file(self) -> None:
        result = load_events_from_csv(StringIO(""))

        assert result.events == []
        assert result.errors == []

    def test_header_only(self) -> None:
        result = load_events_from_csv(csv(EVENT_HEADER))

        assert result.events == []
        assert result.errors == []

    def test_unparsable_file_is_one_error(self) -> None:
        result = load_events_from_csv(csv(
            EVENT_HEADER,
            "2025-01-01,f,click,5,meta",
            "2025-01-01,f,click,5,meta,extra,fields",
        ))

        assert result.events == []
        assert len(result.errors) == 1
        assert result.errors[0].line == 1
        assert result.errors[0].field == 'file'

    def test_file_path(self, tmp_path: Path) -> None:
        path = tmp_path / 'events.csv'
        path.write_text(f"{EVENT_HEADER}\n2025-01-01,f,click,5,\n", encoding='utf-8')

        assert len(load_events_from_csv(path).events) == 1

    def test_header_only_with_wrong_columns(self) -> None:
        result = load_events_from_csv(csv("date,funnel"))

        assert result.events == []
        assert [e.field for e in result.errors] == ['funnel_id', 'stage', 'count']
        assert all(e.line == 1 for e in result.errors)

    def test_non_utf8_file_is_one_error(self, tmp_path: Path) -> None:
        path = tmp_path / 'events.csv'
        path.write_bytes(b"\xff\xfe" + f"{EVENT_HEADER}\n".encode('utf-16-le'))

        result = load_events_from_csv(path)

        assert result.events == []
        assert len(result.errors) == 1
        assert result.errors[0].line == 1
        assert result.errors[0].field == 'file'

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_events_from_csv(tmp_path / 'missing.csv')


# =============================================================================
# CHANGES
# =============================================================================


class TestLoadChanges:
    """Changes CSV loading."""

    def test_valid_file(self) -> None:
        result = load_changes_from_csv(csv(
            CHANGE_HEADER,
            "2025-01-21,spring-sale,site,New landing page,4,landing",
            "2025-01-15,*,external,Holiday,2,",
        ))

        assert result.errors == []
        site, holiday = result.changes
        assert site.category == ChangeCategory.SITE
        assert site.severity == 4
        assert site.affectedStages == ['landing']
        assert holiday.funnelId == '*'
        assert holiday.affectedStages is None

    def test_affected_stages_column_is_optional(self) -> None:
        result = load_changes_from_csv(csv(
            "date,funnel_id,category,description,severity",
            "2025-01-21,f,ad,Paused campaign,3",
        ))

        assert result.errors == []
        assert result.changes[0].affectedStages is None

    def test_category_is_case_insensitive(self) -> None:
        result = load_changes_from_csv(csv(CHANGE_HEADER, "2025-01-21,f,PRICING,Price up,5,"))

        assert result.changes[0].category == ChangeCategory.PRICING

    def test_quoted_description_with_comma(self) -> None:
        result = load_changes_from_csv(csv(
            CHANGE_HEADER,
            '2025-01-21,f,site,"Checkout redesign, phase 2",3,lead;purchase',
        ))

        assert result.changes[0].description == 'Checkout redesign, phase 2'
        assert result.changes[0].affectedStages == ['lead', 'purchase']

    @pytest.mark.parametrize("row,field,message", [
        ("21-01-2025,f,site,x,3,", 'date', "Invalid date format: 21-01-2025"),
        ("2025-01-21,f,weather,x,3,", 'category', "Invalid category: weather"),
        ("2025-01-21,f,site,x,0,", 'severity', "Invalid severity (must be 1-5): 0"),
        ("2025-01-21,f,site,x,6,", 'severity', "Invalid severity (must be 1-5): 6"),
        ("2025-01-21,f,site,x,high,", 'severity', "Invalid severity (must be 1-5): high"),
    ])
    def test_invalid_row(self, row, field, message) -> None:
        result = load_changes_from_csv(csv(CHANGE_HEADER, row))

        assert result.changes == []
        assert result.errors[0].line == 2
        assert result.errors[0].field == field
        assert result.errors[0].message == message

    def test_missing_description(self) -> None:
        result = load_changes_from_csv(csv(CHANGE_HEADER, "2025-01-21,f,site,,3,"))

        assert result.errors[0].message == "Missing required field(s): description"

    def test_missing_columns_reported_on_header_line(self) -> None:
        result = load_changes_from_csv(csv("date,funnel_id,category", "2025-01-21,f,site"))

        assert [e.field for e in result.errors] == ['description', 'severity']
        assert all(e.line == 1 for e in result.errors)

    def test_header_only_with_wrong_columns(self) -> None:
        result = load_changes_from_csv(csv("date,funnel_id,category,description"))

        assert [e.field for e in result.errors] == ['severity']

    def test_non_utf8_file_is_one_error(self, tmp_path: Path) -> None:
        path = tmp_path / 'changes.csv'
        path.write_bytes(CHANGE_HEADER.encode('utf-8') + b"\n2025-01-21,f,site,caf\xe9 \xff,3,\n")

        result = load_changes_from_csv(path)

        assert result.changes == []
        assert [e.field for e in result.errors] == ['file']


# =============================================================================
# HELPERS
# =============================================================================


class TestHelpers:
    """Column validation and cell parsing."""

    def test_parse_affected_stages(self) -> None:
        assert parse_affected_stages(" Landing ; ;LEAD;") == ['landing', 'lead']

    def test_parse_affected_stages_blank(self) -> None:
        assert parse_affected_stages("") is None
        assert parse_affected_stages(" ; ") is None

    def test_validate_columns(self) -> None:
        df = pd.DataFrame(columns=['date', 'funnel_id', 'stage', 'count'])

        assert validate_columns(df, EVENT_REQUIRED_COLUMNS) == []
        assert len(validate_columns(df, CHANGE_REQUIRED_COLUMNS)) == 3

    def test_read_csv_frame_keeps_text(self) -> None:
        df = read_csv_frame(csv(EVENT_HEADER, "2025-01-01,f,click,007,"))

        assert df.loc[0, 'count'] == '007'
        assert df.loc[0, 'source'] == ''
