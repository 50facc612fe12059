from __future__ import annotations

from datetime import date
from typing import Callable

from .booking import DatedReservation, ReservationRequest, ReservationStore, check_reservation, sort_reservations
from .errors import GENERIC_FAILURE_MESSAGE, ReservationError, ReservationStorageError
from .month_grid import CalendarDay, annotate_month, month_title, shift_month


class CalendarView:
    """Page state of the reservation calendar.

    Holds the loaded snapshot, the selected month, the form message and the
    reservation being edited. Checks against the snapshot are optimistic;
    the store repeats them when committing.
    """

    def __init__(self, store: ReservationStore, today: date | None = None, holiday_country: str | None = None) -> None:
        current = today or date.today()
        self.store = store
        self.holiday_country = holiday_country
        self.year = current.year
        self.month0 = current.month - 1
        self.reservations: list[DatedReservation] = []
        self.message: str | None = None
        self.editing: DatedReservation | None = None

    def load(self) -> list[DatedReservation]:
        self.reservations = sort_reservations(self.store.list_all())
        return self.reservations

    def precheck(
        self,
        name: str | None,
        start_date: str | None,
        end_date: str | None,
        exclude_id: str | None = None,
    ) -> ReservationRequest:
        return check_reservation(name, start_date, end_date, self.reservations, exclude_id=exclude_id)

    def create(self, name: str, start_date: str, end_date: str) -> DatedReservation | None:
        self.message = None
        created = self._submit(lambda: self._insert(name, start_date, end_date))
        if created is not None:
            self._reload()
        return created

    def _insert(self, name: str, start_date: str, end_date: str) -> DatedReservation:
        request = self.precheck(name, start_date, end_date)
        return self.store.insert(request.name, request.start_date, request.end_date)

    def open_edit(self, reservation_id: str) -> DatedReservation | None:
        self.editing = next(
            (reservation for reservation in self.reservations if reservation.reservation_id == reservation_id),
            None,
        )
        return self.editing

    def cancel_edit(self) -> None:
        self.editing = None

    def save_edit(self, name: str, start_date: str, end_date: str) -> DatedReservation | None:
        if self.editing is None:
            return None
        self.message = None
        reservation_id = self.editing.reservation_id
        updated = self._submit(lambda: self._update(reservation_id, name, start_date, end_date))
        if updated is not None:
            self.editing = None
            self._reload()
        return updated

    def _update(self, reservation_id: str, name: str, start_date: str, end_date: str) -> DatedReservation:
        request = self.precheck(name, start_date, end_date, exclude_id=reservation_id)
        return self.store.update(reservation_id, request.name, request.start_date, request.end_date)

    def delete_editing(self) -> DatedReservation | None:
        if self.editing is None:
            return None
        self.message = None
        reservation_id = self.editing.reservation_id
        deleted = self._submit(lambda: self.store.delete(reservation_id))
        self.editing = None
        self._reload()
        return deleted

    def select_month(self, year: int, month0: int) -> None:
        self.year, self.month0 = shift_month(year, month0, 0)

    def next_month(self) -> None:
        self.year, self.month0 = shift_month(self.year, self.month0, 1)

    def previous_month(self) -> None:
        self.year, self.month0 = shift_month(self.year, self.month0, -1)

    @property
    def title(self) -> str:
        return month_title(self.year, self.month0)

    def days(self) -> list[CalendarDay]:
        return annotate_month(self.year, self.month0, self.reservations, holiday_country=self.holiday_country)

    def _submit(self, action: Callable[[], DatedReservation]) -> DatedReservation | None:
        try:
            return action()
        except ReservationStorageError:
            self.message = GENERIC_FAILURE_MESSAGE
        except ReservationError as error:
            self.message = str(error)
        return None

    def _reload(self) -> None:
        try:
            self.load()
        except ReservationStorageError:
            self.message = GENERIC_FAILURE_MESSAGE
