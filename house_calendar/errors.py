"""Error kinds raised by the reservation core and the store.

Validation and conflict errors are recoverable by the caller supplying other
input. Storage errors wrap an opaque cause and are surfaced as a generic
failure.
"""

from __future__ import annotations

from typing import Any

VALIDATION = "validation"
CONFLICT = "conflict"
NOT_FOUND = "not_found"
UNEXPECTED = "unexpected"

GENERIC_FAILURE_MESSAGE = "Something went wrong, please try again later."


class ReservationError(Exception):
    kind = "reservation_error"
    category = UNEXPECTED


class EmptyNameError(ReservationError, ValueError):
    kind = "empty_name"
    category = VALIDATION

    def __init__(self, message: str = "Name is required.") -> None:
        super().__init__(message)


class MalformedDateError(ReservationError, ValueError):
    kind = "malformed_date"
    category = VALIDATION

    def __init__(self, value: Any = None) -> None:
        self.value = value
        super().__init__(f"Dates must use the YYYY-MM-DD format (got {value!r}).")


class InvertedRangeError(ReservationError, ValueError):
    kind = "inverted_range"
    category = VALIDATION

    def __init__(self, start_date: str, end_date: str) -> None:
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(f"End date {end_date} must not be before start date {start_date}.")


class ReservationConflictError(ReservationError, ValueError):
    """The requested range overlaps an existing reservation."""

    kind = "conflict"
    category = CONFLICT

    def __init__(self, conflicting: Any) -> None:
        self.conflicting = conflicting
        super().__init__(
            f'Conflicts with "{conflicting.name}" ({conflicting.start_date} → {conflicting.end_date}).'
        )


class ReservationNotFoundError(ReservationError, LookupError):
    kind = "not_found"
    category = NOT_FOUND

    def __init__(self, reservation_id: str) -> None:
        self.reservation_id = reservation_id
        super().__init__(f"Reservation {reservation_id!r} not found.")


class ReservationStorageError(ReservationError, RuntimeError):
    kind = "store_failure"
    category = UNEXPECTED


class InvalidMonthError(ReservationError, ValueError):
    kind = "invalid_month"
    category = VALIDATION

    def __init__(self, year: int | None, month0: int) -> None:
        self.year = year
        self.month0 = month0
        super().__init__("month must be between 0 and 11 and year between 1 and 9999.")
