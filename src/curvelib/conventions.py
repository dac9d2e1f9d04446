"""
Day count, business day and payment frequency conventions.

These are the collaborator functions the bootstrapper consumes when quotes
are given as dates rather than year fractions. They are pure functions and
hold no state between calls.

Supported Day Counts:
- ACT/360: Actual days / 360 (money markets, OIS)
- ACT/365: Actual days / 365
- ACT/ACT: Actual days / actual days in year (ISDA)
- 30/360: 30 days per month / 360

Business Day Conventions:
- Modified Following: Move to next business day, unless it falls in next month (then previous)
- Following: Move to next business day
- Preceding: Move to previous business day
"""

from datetime import date, timedelta
from enum import Enum
from typing import Optional
import calendar


class DayCount(Enum):
    """Day count convention enumeration."""
    ACT_360 = "ACT/360"
    ACT_365 = "ACT/365"
    ACT_ACT = "ACT/ACT"
    THIRTY_360 = "30/360"

    @classmethod
    def from_string(cls, s: str) -> "DayCount":
        """Parse day count from string representation."""
        mapping = {
            "ACT/360": cls.ACT_360,
            "ACT360": cls.ACT_360,
            "ACT/365": cls.ACT_365,
            "ACT365": cls.ACT_365,
            "ACT/365F": cls.ACT_365,
            "ACT/ACT": cls.ACT_ACT,
            "ACTACT": cls.ACT_ACT,
            "30/360": cls.THIRTY_360,
            "30360": cls.THIRTY_360,
        }
        key = s.upper().replace(" ", "")
        if key in mapping:
            return mapping[key]
        raise ValueError(f"Unknown day count convention: {s}")


class BusinessDayConvention(Enum):
    """Business day adjustment convention."""
    MODIFIED_FOLLOWING = "ModifiedFollowing"
    FOLLOWING = "Following"
    PRECEDING = "Preceding"
    UNADJUSTED = "Unadjusted"


class CompoundingConvention(Enum):
    """Interest rate compounding convention."""
    CONTINUOUS = "Continuous"
    ANNUAL = "Annual"
    SEMI_ANNUAL = "SemiAnnual"
    QUARTERLY = "Quarterly"
    SIMPLE = "Simple"

    @property
    def periods_per_year(self) -> Optional[int]:
        """Compounding periods per year, None for continuous and simple."""
        return {
            CompoundingConvention.ANNUAL: 1,
            CompoundingConvention.SEMI_ANNUAL: 2,
            CompoundingConvention.QUARTERLY: 4,
        }.get(self)


class Frequency(Enum):
    """Swap leg payment frequency, valued in payments per year."""
    ANNUAL = 1
    SEMI_ANNUAL = 2
    QUARTERLY = 4
    MONTHLY = 12
    DAILY = 365

    @property
    def payments_per_year(self) -> int:
        return self.value

    @property
    def period_years(self) -> float:
        """Length of one regular period in years."""
        return 1.0 / self.value

    @classmethod
    def from_string(cls, s: str) -> "Frequency":
        """Parse a frequency such as "ANNUAL", "SEMI", "3M" or "Q"."""
        mapping = {
            "ANNUAL": cls.ANNUAL,
            "A": cls.ANNUAL,
            "1Y": cls.ANNUAL,
            "12M": cls.ANNUAL,
            "SEMI": cls.SEMI_ANNUAL,
            "SEMIANNUAL": cls.SEMI_ANNUAL,
            "SEMI_ANNUAL": cls.SEMI_ANNUAL,
            "S": cls.SEMI_ANNUAL,
            "6M": cls.SEMI_ANNUAL,
            "QUARTERLY": cls.QUARTERLY,
            "Q": cls.QUARTERLY,
            "3M": cls.QUARTERLY,
            "MONTHLY": cls.MONTHLY,
            "M": cls.MONTHLY,
            "1M": cls.MONTHLY,
            "DAILY": cls.DAILY,
            "D": cls.DAILY,
        }
        key = s.upper().replace(" ", "").replace("-", "")
        if key in mapping:
            return mapping[key]
        raise ValueError(f"Unknown payment frequency: {s}")


def year_fraction(start: date, end: date, day_count: DayCount) -> float:
    """
    Calculate year fraction between two dates using specified day count convention.

    Args:
        start: Start date
        end: End date
        day_count: Day count convention

    Returns:
        Year fraction as float (0.0 when end is not after start)
    """
    if start >= end:
        return 0.0

    actual_days = (end - start).days

    if day_count == DayCount.ACT_360:
        return actual_days / 360.0

    elif day_count == DayCount.ACT_365:
        return actual_days / 365.0

    elif day_count == DayCount.ACT_ACT:
        # ISDA ACT/ACT: split by year boundaries
        if start.year == end.year:
            return actual_days / (366 if calendar.isleap(start.year) else 365)
        total = 0.0
        for year in range(start.year, end.year + 1):
            period_start = start if year == start.year else date(year, 1, 1)
            period_end = end if year == end.year else date(year + 1, 1, 1)
            days_in_year = 366 if calendar.isleap(year) else 365
            total += (period_end - period_start).days / days_in_year
        return total

    elif day_count == DayCount.THIRTY_360:
        # 30/360 US convention
        d1 = min(start.day, 30)
        d2 = end.day
        if d2 == 31 and d1 == 30:
            d2 = 30
        return (360 * (end.year - start.year) + 30 * (end.month - start.month) + (d2 - d1)) / 360.0

    else:
        raise ValueError(f"Unknown day count: {day_count}")


def is_business_day(d: date, holidays: Optional[set] = None) -> bool:
    """
    Check if a date is a business day.

    Uses weekend-only calendar by default (Saturday/Sunday are non-business days).
    """
    if d.weekday() >= 5:
        return False
    if holidays and d in holidays:
        return False
    return True


def _roll(d: date, step: int, holidays: Optional[set]) -> date:
    while not is_business_day(d, holidays):
        d += timedelta(days=step)
    return d


def adjust_business_day(
    d: date,
    convention: BusinessDayConvention,
    holidays: Optional[set] = None
) -> date:
    """
    Adjust a date according to business day convention.

    Args:
        d: Date to adjust
        convention: Business day adjustment rule
        holidays: Optional set of holiday dates

    Returns:
        Adjusted date
    """
    if convention == BusinessDayConvention.UNADJUSTED or is_business_day(d, holidays):
        return d

    if convention == BusinessDayConvention.FOLLOWING:
        return _roll(d, 1, holidays)

    if convention == BusinessDayConvention.PRECEDING:
        return _roll(d, -1, holidays)

    if convention == BusinessDayConvention.MODIFIED_FOLLOWING:
        adjusted = _roll(d, 1, holidays)
        # Crossed into next month: go preceding instead
        if adjusted.month != d.month:
            adjusted = _roll(d, -1, holidays)
        return adjusted

    raise ValueError(f"Unknown business day convention: {convention}")


__all__ = [
    "DayCount",
    "BusinessDayConvention",
    "CompoundingConvention",
    "Frequency",
    "year_fraction",
    "is_business_day",
    "adjust_business_day",
]
