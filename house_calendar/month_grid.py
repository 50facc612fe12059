"""Month grid arithmetic for the reservation calendar.

Grids are always 6 weeks of 7 days, Monday first, so the calendar keeps a
constant height whatever the month.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from typing import Any, Iterable

import holidays as pyholidays

from .booking import DatedReservation, reservation_for_day
from .errors import InvalidMonthError

GRID_WEEKS = 6
GRID_SIZE = GRID_WEEKS * 7

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]
WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

_HOLIDAY_CACHE: dict[tuple[str, int], dict[str, str]] = {}


@dataclass(frozen=True)
class CalendarCell:
    index: int
    date_iso: str | None = None
    label: str | None = None

    @property
    def is_padding(self) -> bool:
        return self.date_iso is None


@dataclass(frozen=True)
class CalendarDay:
    cell: CalendarCell
    reservation: DatedReservation | None = None
    holiday: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "index": self.cell.index,
            "date": self.cell.date_iso,
            "label": self.cell.label,
            "holiday": self.holiday,
            "reservation": None,
        }
        if self.reservation is not None:
            payload["reservation"] = {
                "id": self.reservation.reservation_id,
                "name": self.reservation.name,
                "start_date": self.reservation.start_date,
                "end_date": self.reservation.end_date,
            }
        return payload


def build_month(year: int, month0: int) -> list[CalendarCell]:
    """Return the 42 cells of the month grid; ``month0`` is zero-based."""
    _check_month(month0, year)
    offset, days_in_month = calendar.monthrange(year, month0 + 1)

    cells: list[CalendarCell] = []
    for index in range(GRID_SIZE):
        day = index - offset + 1
        if day < 1 or day > days_in_month:
            cells.append(CalendarCell(index=index))
        else:
            cells.append(
                CalendarCell(
                    index=index,
                    date_iso=f"{year:04d}-{month0 + 1:02d}-{day:02d}",
                    label=str(day),
                )
            )
    return cells


def month_rows(cells: list[CalendarCell]) -> list[list[CalendarCell]]:
    return [cells[start : start + 7] for start in range(0, len(cells), 7)]


def shift_month(year: int, month0: int, delta: int) -> tuple[int, int]:
    _check_month(month0)
    total = year * 12 + month0 + delta
    return total // 12, total % 12


def month_title(year: int, month0: int) -> str:
    _check_month(month0)
    return f"{MONTH_NAMES[month0]} {year}"


def year_options(start_year: int, count: int = 5) -> list[int]:
    if count <= 0:
        raise ValueError("count must be greater than zero")
    return list(range(start_year, start_year + count))


def annotate_month(
    year: int,
    month0: int,
    reservations: Iterable[DatedReservation],
    holiday_country: str | None = None,
) -> list[CalendarDay]:
    _check_month(month0, year)
    snapshot = list(reservations)
    holiday_names = _holiday_names(holiday_country, year) if holiday_country else {}

    days: list[CalendarDay] = []
    for cell in build_month(year, month0):
        if cell.date_iso is None:
            days.append(CalendarDay(cell=cell))
            continue
        days.append(
            CalendarDay(
                cell=cell,
                reservation=reservation_for_day(cell.date_iso, snapshot),
                holiday=holiday_names.get(cell.date_iso),
            )
        )
    return days


def _check_month(month0: int, year: int | None = None) -> None:
    if not 0 <= month0 <= 11 or (year is not None and not 1 <= year <= 9999):
        raise InvalidMonthError(year, month0)


def _holiday_names(country: str, year: int) -> dict[str, str]:
    key = (country.upper(), year)
    if key not in _HOLIDAY_CACHE:
        holiday_map = pyholidays.country_holidays(key[0], years=[year])
        _HOLIDAY_CACHE[key] = {day.isoformat(): str(name) for day, name in holiday_map.items()}
    return _HOLIDAY_CACHE[key]
