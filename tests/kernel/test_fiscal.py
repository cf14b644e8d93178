"""Tests for the fiscal calendar and report periods."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfoNotFoundError

import pytest

from gst_kernel.domain.clock import DeterministicClock, SystemClock
from gst_kernel.domain.fiscal import (
    FiscalCalendar,
    PeriodKind,
    ReportPeriod,
    format_fiscal_year,
    parse_fiscal_year,
)
from gst_kernel.exceptions import InvalidPeriod


class TestFiscalYearLabels:
    @pytest.mark.parametrize("start, label", [(2024, "2024-25"), (1999, "1999-00"), (2099, "2099-00")])
    def test_format(self, start, label):
        assert format_fiscal_year(start) == label

    def test_parse(self):
        assert parse_fiscal_year("2024-25") == 2024
        assert parse_fiscal_year("1999-00") == 1999

    @pytest.mark.parametrize("label", ["2024-26", "2024/25", "202425", "", None])
    def test_parse_rejects(self, label):
        with pytest.raises(InvalidPeriod):
            parse_fiscal_year(label)


class TestFiscalCalendar:
    def setup_method(self):
        self.calendar = FiscalCalendar()

    @pytest.mark.parametrize(
        "moment, label",
        [
            (date(2024, 4, 1), "2024-25"),
            (date(2024, 3, 31), "2023-24"),
            (date(2025, 3, 31), "2024-25"),
            (datetime(2025, 3, 31, 18, 29, tzinfo=timezone.utc), "2024-25"),
            (datetime(2025, 3, 31, 18, 30, tzinfo=timezone.utc), "2025-26"),
        ],
    )
    def test_fiscal_year_in_local_time(self, moment, label):
        assert self.calendar.fiscal_year(moment) == label

    @pytest.mark.parametrize(
        "day, quarter",
        [(date(2024, 4, 1), 1), (date(2024, 6, 30), 1), (date(2024, 7, 1), 2),
         (date(2024, 10, 1), 3), (date(2025, 1, 1), 4), (date(2025, 3, 31), 4)],
    )
    def test_quarter(self, day, quarter):
        assert self.calendar.quarter(day) == quarter

    def test_naive_datetime_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            self.calendar.fiscal_year(datetime(2024, 7, 1))

    def test_bounds(self):
        assert self.calendar.fiscal_year_bounds("2024-25") == (date(2024, 4, 1), date(2025, 3, 31))
        assert self.calendar.quarter_bounds("2024-25", 4) == (date(2025, 1, 1), date(2025, 3, 31))

    def test_calendar_year_fiscal_calendar(self):
        calendar = FiscalCalendar(start_month=1, timezone="UTC")
        assert calendar.fiscal_year(date(2024, 12, 31)) == "2024-25"
        assert calendar.quarter(date(2024, 12, 31)) == 4

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            FiscalCalendar(start_month=13)
        with pytest.raises(ZoneInfoNotFoundError):
            FiscalCalendar(timezone="Mars/Olympus_Mons")

    def test_bad_quarter(self):
        with pytest.raises(InvalidPeriod):
            self.calendar.quarter_bounds("2024-25", 0)


class TestReportPeriod:
    def test_month(self):
        period = ReportPeriod.month(2024, 2)
        assert period.kind == PeriodKind.MONTH
        assert period.label == "2024-02"
        assert period.end == date(2024, 2, 29)
        assert period.return_period == "022024"

    def test_fiscal_quarter(self):
        period = ReportPeriod.fiscal_quarter(FiscalCalendar(), "2024-25", 2)
        assert period.label == "2024-25-Q2"
        assert (period.start, period.end) == (date(2024, 7, 1), date(2024, 9, 30))
        assert period.return_period == "092024"
        assert period.contains(date(2024, 8, 15))
        assert not period.contains(date(2024, 10, 1))

    def test_fiscal_months(self):
        months = ReportPeriod.fiscal_months(FiscalCalendar(), "2024-25")
        assert [m.label for m in months[:2]] == ["2024-04", "2024-05"]
        assert months[-1].label == "2025-03"
        assert len(months) == 12
        assert all(m.kind == PeriodKind.MONTH for m in months)

    def test_fiscal_months_follow_start_month(self):
        months = ReportPeriod.fiscal_months(FiscalCalendar(start_month=1), "2024-25")
        assert (months[0].label, months[-1].label) == ("2024-01", "2024-12")

    def test_fiscal_months_bad_label(self):
        with pytest.raises(InvalidPeriod):
            ReportPeriod.fiscal_months(FiscalCalendar(), "2024")

    @pytest.mark.parametrize("year, month", [(2024, 0), (2024, 13), (1999, 5)])
    def test_invalid_month(self, year, month):
        with pytest.raises(InvalidPeriod):
            ReportPeriod.month(year, month)


class TestClocks:
    def test_deterministic_clock(self):
        clock = DeterministicClock()
        first = clock.now()
        assert clock.now() == first
        assert (clock.tick() - first).total_seconds() == 1
        clock.set_time(datetime(2025, 1, 1, tzinfo=timezone.utc))
        assert clock.now().year == 2025

    def test_deterministic_clock_needs_timezone(self):
        with pytest.raises(ValueError):
            DeterministicClock(datetime(2024, 1, 1))

    def test_system_clock_is_aware(self):
        assert SystemClock().now().tzinfo is not None
        assert SystemClock().now_utc().utcoffset().total_seconds() == 0
