"""
Unit tests for conventions module.
"""

from datetime import date
import pytest

from curvelib.conventions import (
    DayCount,
    BusinessDayConvention,
    CompoundingConvention,
    Frequency,
    year_fraction,
    is_business_day,
    adjust_business_day,
)


class TestDayCount:
    """Tests for day count conventions."""

    def test_act_360(self):
        """Test ACT/360 day count."""
        start = date(2024, 1, 15)
        end = date(2024, 4, 15)  # 91 days

        yf = year_fraction(start, end, DayCount.ACT_360)
        assert abs(yf - 91 / 360) < 1e-10

    def test_act_365(self):
        """Test ACT/365 day count."""
        start = date(2024, 1, 15)
        end = date(2024, 4, 15)

        yf = year_fraction(start, end, DayCount.ACT_365)
        assert abs(yf - 91 / 365) < 1e-10

    def test_act_act_splits_years(self):
        """ACT/ACT weights each calendar year by its own length."""
        start = date(2023, 7, 1)
        end = date(2024, 7, 1)

        yf = year_fraction(start, end, DayCount.ACT_ACT)
        expected = 184 / 365 + 182 / 366
        assert abs(yf - expected) < 1e-12

    def test_act_act_within_leap_year(self):
        yf = year_fraction(date(2024, 1, 1), date(2024, 12, 31), DayCount.ACT_ACT)
        assert abs(yf - 365 / 366) < 1e-12

    def test_thirty_360(self):
        """Test 30/360 day count."""
        yf = year_fraction(date(2024, 1, 15), date(2024, 4, 15), DayCount.THIRTY_360)
        assert abs(yf - 90 / 360) < 1e-10

    def test_thirty_360_month_end(self):
        """31st after a 30th/31st start counts as the 30th."""
        yf = year_fraction(date(2024, 1, 31), date(2024, 3, 31), DayCount.THIRTY_360)
        assert abs(yf - 60 / 360) < 1e-12

    def test_year_fraction_same_date(self):
        """Test year fraction for same date returns 0."""
        d = date(2024, 1, 15)
        assert year_fraction(d, d, DayCount.ACT_360) == 0.0

    def test_year_fraction_reversed_dates(self):
        assert year_fraction(date(2024, 2, 1), date(2024, 1, 1), DayCount.ACT_365) == 0.0

    @pytest.mark.parametrize("name,expected", [
        ("ACT/360", DayCount.ACT_360),
        ("act/365f", DayCount.ACT_365),
        ("ACT ACT", DayCount.ACT_ACT),
        ("30/360", DayCount.THIRTY_360),
    ])
    def test_from_string(self, name, expected):
        assert DayCount.from_string(name) == expected

    def test_from_string_unknown(self):
        with pytest.raises(ValueError):
            DayCount.from_string("BUS/252")


class TestFrequency:
    """Tests for payment frequencies."""

    def test_period_years(self):
        assert Frequency.ANNUAL.period_years == 1.0
        assert Frequency.SEMI_ANNUAL.period_years == 0.5
        assert Frequency.QUARTERLY.period_years == 0.25
        assert Frequency.QUARTERLY.payments_per_year == 4

    @pytest.mark.parametrize("name,expected", [
        ("ANNUAL", Frequency.ANNUAL),
        ("semi-annual", Frequency.SEMI_ANNUAL),
        ("6M", Frequency.SEMI_ANNUAL),
        ("Q", Frequency.QUARTERLY),
        ("1M", Frequency.MONTHLY),
        ("daily", Frequency.DAILY),
    ])
    def test_from_string(self, name, expected):
        assert Frequency.from_string(name) == expected

    def test_from_string_unknown(self):
        with pytest.raises(ValueError):
            Frequency.from_string("fortnightly")

    def test_compounding_periods(self):
        assert CompoundingConvention.SEMI_ANNUAL.periods_per_year == 2
        assert CompoundingConvention.CONTINUOUS.periods_per_year is None
        assert CompoundingConvention.SIMPLE.periods_per_year is None


class TestBusinessDays:
    """Tests for business day adjustment."""

    def test_weekend_is_not_business_day(self):
        assert is_business_day(date(2024, 1, 15))
        assert not is_business_day(date(2024, 1, 13))
        assert not is_business_day(date(2024, 1, 14))

    def test_holiday(self):
        assert not is_business_day(date(2024, 1, 15), holidays={date(2024, 1, 15)})

    def test_following(self):
        # Saturday 2024-03-30 -> Monday 2024-04-01
        adjusted = adjust_business_day(date(2024, 3, 30), BusinessDayConvention.FOLLOWING)
        assert adjusted == date(2024, 4, 1)

    def test_preceding(self):
        adjusted = adjust_business_day(date(2024, 3, 30), BusinessDayConvention.PRECEDING)
        assert adjusted == date(2024, 3, 29)

    def test_modified_following_stays_in_month(self):
        # Saturday 2024-08-31: following would cross into September
        adjusted = adjust_business_day(date(2024, 8, 31), BusinessDayConvention.MODIFIED_FOLLOWING)
        assert adjusted == date(2024, 8, 30)

    def test_modified_following_rolls_forward(self):
        adjusted = adjust_business_day(date(2024, 1, 13), BusinessDayConvention.MODIFIED_FOLLOWING)
        assert adjusted == date(2024, 1, 15)

    def test_unadjusted(self):
        d = date(2024, 1, 13)
        assert adjust_business_day(d, BusinessDayConvention.UNADJUSTED) == d

    def test_business_day_unchanged(self):
        d = date(2024, 1, 16)
        for convention in BusinessDayConvention:
            assert adjust_business_day(d, convention) == d

    def test_holiday_skipped(self):
        holidays = {date(2024, 1, 15)}
        adjusted = adjust_business_day(date(2024, 1, 13), BusinessDayConvention.FOLLOWING, holidays)
        assert adjusted == date(2024, 1, 16)
