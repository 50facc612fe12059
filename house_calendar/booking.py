from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import combinations
from typing import Iterable, Protocol, Sequence, TypeGuard, TypeVar

from .errors import EmptyNameError, InvertedRangeError, MalformedDateError, ReservationConflictError

_ISO_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


class DatedReservation(Protocol):
    @property
    def reservation_id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def start_date(self) -> str: ...

    @property
    def end_date(self) -> str: ...


R = TypeVar("R", bound=DatedReservation)


@dataclass(frozen=True)
class Reservation:
    """In-memory reservation snapshot, as held by a client or passed to the checks."""

    name: str
    start_date: str
    end_date: str
    reservation_id: str = ""

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise InvertedRangeError(self.start_date, self.end_date)


@dataclass(frozen=True)
class ReservationRequest:
    """A candidate that passed validation and the conflict check."""

    name: str
    start_date: str
    end_date: str


class ReservationStore(Protocol):
    def list_all(self) -> Sequence[DatedReservation]: ...

    def insert(self, name: str, start_date: str, end_date: str) -> DatedReservation: ...

    def update(self, reservation_id: str, name: str, start_date: str, end_date: str) -> DatedReservation: ...

    def delete(self, reservation_id: str) -> DatedReservation: ...


def ranges_overlap(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    """Return True when two inclusive date ranges share at least one day.

    Dates are ISO ``YYYY-MM-DD`` strings compared lexically. A range ending on
    the day another one starts overlaps it: there is no same-day turnover.
    """
    return not (a_end < b_start or a_start > b_end)


def is_iso_date(value: object) -> TypeGuard[str]:
    return isinstance(value, str) and _ISO_DATE_RE.fullmatch(value) is not None


def validate_reservation(name: str | None, start_date: str | None, end_date: str | None) -> ReservationRequest:
    """Check the submitted fields and return them with the name trimmed.

    Only the ``YYYY-MM-DD`` shape is checked, not whether the day exists.
    """
    trimmed = (name or "").strip()
    if not trimmed:
        raise EmptyNameError()
    if not is_iso_date(start_date):
        raise MalformedDateError(start_date)
    if not is_iso_date(end_date):
        raise MalformedDateError(end_date)
    if end_date < start_date:
        raise InvertedRangeError(start_date, end_date)
    return ReservationRequest(name=trimmed, start_date=start_date, end_date=end_date)


def find_conflict(
    start_date: str,
    end_date: str,
    existing_reservations: Iterable[R],
    exclude_id: str | None = None,
) -> R | None:
    for reservation in existing_reservations:
        if exclude_id is not None and reservation.reservation_id == exclude_id:
            continue
        if ranges_overlap(start_date, end_date, reservation.start_date, reservation.end_date):
            return reservation
    return None


def check_reservation(
    name: str | None,
    start_date: str | None,
    end_date: str | None,
    existing_reservations: Iterable[DatedReservation],
    exclude_id: str | None = None,
) -> ReservationRequest:
    """Validate a create/update request and check it against the others.

    The same check runs as the client-side pre-check and inside the store
    commit; only the latter is authoritative.
    """
    request = validate_reservation(name, start_date, end_date)

    conflict = find_conflict(request.start_date, request.end_date, existing_reservations, exclude_id=exclude_id)
    if conflict is not None:
        raise ReservationConflictError(conflict)
    return request


def sort_reservations(reservations: Iterable[R]) -> list[R]:
    return sorted(reservations, key=lambda reservation: reservation.start_date)


def reservation_for_day(day_iso: str, reservations: Iterable[R]) -> R | None:
    """Return the reservation covering ``day_iso``.

    If stored reservations overlap, the earliest-starting one wins.
    """
    for reservation in sort_reservations(reservations):
        if reservation.start_date <= day_iso <= reservation.end_date:
            return reservation
    return None


def find_overlapping_pairs(reservations: Iterable[R]) -> list[tuple[R, R]]:
    ordered = sort_reservations(reservations)
    return [
        (first, second)
        for first, second in combinations(ordered, 2)
        if ranges_overlap(first.start_date, first.end_date, second.start_date, second.end_date)
    ]
