"""
Birthday parsing and next-occurrence arithmetic
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

LEAP_DAY_RULES = ('feb28', 'mar1')

_ISO_PATTERN = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
_COMPACT_PATTERN = re.compile(r'^(\d{4})(\d{2})(\d{2})$')
_YEARLESS_PATTERN = re.compile(r'^--(\d{2})-?(\d{2})$')


class NormalizationError(ValueError):
    """Raised when a birthday value cannot be turned into a month/day pair"""


@dataclass(frozen=True)
class Birthday:
    """Month and day of a birthday, with the birth year when it is known"""

    month: int
    day: int
    year: Optional[int] = None

    def isoformat(self, compact: bool = False) -> str:
        if self.year is None:
            return f'--{self.month:02d}{self.day:02d}'
        if compact:
            return f'{self.year:04d}{self.month:02d}{self.day:02d}'
        return f'{self.year:04d}-{self.month:02d}-{self.day:02d}'


@dataclass(frozen=True)
class Occurrence:
    date: date
    age: Optional[int]
    years_advanced: int


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def validate_month_day(month: int, day: int):
    if month < 1 or month > 12:
        raise NormalizationError(f'Invalid month: {month}')
    if day < 1 or day > 31:
        raise NormalizationError(f'Invalid day: {day}')
    # 2000 is a leap year, so February 29 always passes here
    try:
        date(2000, month, day)
    except ValueError as e:
        raise NormalizationError(f'Invalid month/day combination: {month:02d}-{day:02d}') from e


def normalize(raw: str) -> Birthday:
    """
    Parse a vCard BDAY value into a Birthday.

    Accepts YYYY-MM-DD, YYYYMMDD, --MMDD and --MM-DD. A trailing time part
    (``T...``) is ignored.
    """
    if raw is None:
        raise NormalizationError('Empty birthday value')

    value = raw.strip().split('T')[0]
    if not value:
        raise NormalizationError('Empty birthday value')

    year = None
    if value.startswith('-'):
        match = _YEARLESS_PATTERN.match(value)
        if match:
            month, day = match.groups()
    elif '-' in value:
        match = _ISO_PATTERN.match(value)
        if match:
            year, month, day = match.groups()
    else:
        match = _COMPACT_PATTERN.match(value)
        if match:
            year, month, day = match.groups()

    if not match:
        raise NormalizationError(f'Unknown birthday format: {raw!r}')

    month, day = int(month), int(day)
    validate_month_day(month, day)

    return Birthday(month=month, day=day, year=int(year) if year is not None else None)


def birthday_date_for_year(birthday: Birthday, year: int, leap_day_rule: str = 'feb28') -> date:
    """Date the birthday falls on in the given year"""
    if birthday.month == 2 and birthday.day == 29 and not is_leap_year(year):
        if leap_day_rule == 'feb28':
            return date(year, 2, 28)
        if leap_day_rule == 'mar1':
            return date(year, 3, 1)
        raise ValueError(f'Unsupported leap day rule: {leap_day_rule}')
    return date(year, birthday.month, birthday.day)


def next_occurrence(birthday: Birthday, today: date, leap_day_rule: str = 'feb28') -> Occurrence:
    """
    Earliest date on or after ``today`` that matches the birthday.

    The search starts in the year of ``today``, or in the birth year when that
    is still ahead. Age is only reported when the birth year is known;
    ``years_advanced`` counts how many years the search had to move forward.
    """
    start_year = today.year
    if birthday.year is not None and birthday.year > start_year:
        start_year = birthday.year

    year = start_year
    candidate = birthday_date_for_year(birthday, year, leap_day_rule)
    while candidate < today:
        year += 1
        candidate = birthday_date_for_year(birthday, year, leap_day_rule)

    age = candidate.year - birthday.year if birthday.year is not None else None
    return Occurrence(date=candidate, age=age, years_advanced=year - start_year)
