from typing import Iterable, Optional

from models import Month

CALENDAR_ORDER: tuple[Month, ...] = (
    Month.january,
    Month.february,
    Month.march,
    Month.april,
    Month.may,
    Month.june,
    Month.july,
    Month.august,
    Month.september,
    Month.october,
    Month.november,
    Month.december,
)

_THIRTY_DAY_MONTHS = {Month.april, Month.june, Month.september, Month.november}


def is_leap_year(year: int) -> bool:
    if year % 400 == 0:
        return True
    if year % 100 == 0:
        return False
    return year % 4 == 0


def days_in_month(month: Optional[str], year: int) -> int:
    """Highest valid day for ``month`` in ``year``; unknown months allow 31."""
    try:
        parsed = Month((month or "").strip().upper())
    except ValueError:
        return 31
    if parsed is Month.february:
        return 29 if is_leap_year(year) else 28
    if parsed in _THIRTY_DAY_MONTHS:
        return 30
    return 31


def sort_months(months: Iterable[Month]) -> list[Month]:
    index = {month: position for position, month in enumerate(CALENDAR_ORDER)}
    return sorted(months, key=lambda month: index[month])
