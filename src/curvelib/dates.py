"""
Date utilities for curve construction.

Provides:
- Tenor parsing and date arithmetic
- Payment schedule generation for swap legs
- Conversion of adjusted payment dates to curve times (year fractions)
"""

from datetime import date, timedelta
from typing import List, Optional, Tuple, Union
import re

from .conventions import (
    BusinessDayConvention,
    DayCount,
    Frequency,
    adjust_business_day,
    is_business_day,
    year_fraction
)


class DateUtils:
    """Utility class for date manipulation in rates contexts."""

    # Tenor regex pattern: number + unit (D/W/M/Y)
    TENOR_PATTERN = re.compile(r'^(\d+)([DWMY])$', re.IGNORECASE)

    @staticmethod
    def parse_tenor(tenor: str) -> Tuple[int, str]:
        """
        Parse a tenor string into (amount, unit).

        Args:
            tenor: Tenor string like "1D", "3M", "2Y"

        Returns:
            Tuple of (amount, unit) where unit is D/W/M/Y

        Raises:
            ValueError: If tenor format is invalid
        """
        match = DateUtils.TENOR_PATTERN.match(tenor.upper().strip())
        if not match:
            raise ValueError(f"Invalid tenor format: {tenor}. Expected format like '3M', '2Y'")

        return int(match.group(1)), match.group(2).upper()

    @staticmethod
    def add_tenor(start: date, tenor: str, holidays: Optional[set] = None) -> date:
        """
        Add a tenor to a date.

        Day tenors count business days; week, month and year tenors are
        calendar arithmetic, clipping the day to the end of the month.
        """
        amount, unit = DateUtils.parse_tenor(tenor)

        if unit == 'D':
            result = start
            days_added = 0
            while days_added < amount:
                result += timedelta(days=1)
                if is_business_day(result, holidays):
                    days_added += 1
            return result

        if unit == 'W':
            return start + timedelta(weeks=amount)

        if unit == 'M':
            return _add_months(start, amount)

        return _add_months(start, 12 * amount)

    @staticmethod
    def tenor_to_years(tenor: str) -> float:
        """Convert tenor to approximate year fraction."""
        amount, unit = DateUtils.parse_tenor(tenor)

        if unit == 'D':
            return amount / 365.0
        elif unit == 'W':
            return amount * 7 / 365.0
        elif unit == 'M':
            return amount / 12.0
        return float(amount)

    @staticmethod
    def generate_schedule(
        start: date,
        end: date,
        frequency: Union[int, Frequency],
        convention: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
        holidays: Optional[set] = None
    ) -> List[date]:
        """
        Generate a payment schedule between start and end dates.

        Dates roll backward from the maturity so that any stub sits at the
        front. The start date itself is not part of the schedule.

        Args:
            start: Schedule start (accrual start)
            end: Schedule end (maturity)
            frequency: Payments per year or a Frequency
            convention: Business day adjustment
            holidays: Holiday calendar

        Returns:
            List of payment dates (adjusted for business days)
        """
        if isinstance(frequency, Frequency):
            frequency = frequency.payments_per_year
        if frequency <= 0:
            raise ValueError("Frequency must be positive")
        if end <= start:
            raise ValueError(f"Schedule end {end} must be after start {start}")

        if frequency > 12:
            unadjusted = []
            current = start + timedelta(days=1)
            while current < end:
                if is_business_day(current, holidays):
                    unadjusted.append(current)
                current += timedelta(days=1)
            unadjusted.append(end)
        else:
            months_per_period = 12 // frequency
            unadjusted = [end]
            n = 1
            while True:
                prev_date = _add_months(end, -months_per_period * n)
                if prev_date <= start:
                    break
                unadjusted.insert(0, prev_date)
                n += 1

        adjusted = [adjust_business_day(d, convention, holidays) for d in unadjusted]
        # Adjustment can collapse two dates onto the same business day
        return sorted(set(adjusted))

    @staticmethod
    def payment_times(
        anchor: date,
        start: date,
        end: date,
        frequency: Union[int, Frequency],
        day_count: DayCount = DayCount.ACT_365,
        convention: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
        holidays: Optional[set] = None
    ) -> List[float]:
        """
        Payment schedule expressed as curve times from the anchor date.

        Returns:
            Strictly increasing list of year fractions, the last being the
            time of the final (adjusted) payment date
        """
        schedule = DateUtils.generate_schedule(start, end, frequency, convention, holidays)
        times = [year_fraction(anchor, d, day_count) for d in schedule]
        return [t for t in times if t > 0.0]


def _add_months(d: date, months: int) -> date:
    """Shift a date by whole months, clipping to the month end."""
    year = d.year + (d.month + months - 1) // 12
    month = (d.month + months - 1) % 12 + 1
    return date(year, month, min(d.day, _days_in_month(year, month)))


def _days_in_month(year: int, month: int) -> int:
    """Return number of days in a month."""
    if month in (1, 3, 5, 7, 8, 10, 12):
        return 31
    elif month in (4, 6, 9, 11):
        return 30
    elif month == 2:
        if (year % 4 == 0 and year % 100 != 0) or (year % 400 == 0):
            return 29
        return 28
    raise ValueError(f"Invalid month: {month}")


__all__ = [
    "DateUtils",
]
