from .booking import (
	Reservation,
	ReservationRequest,
	ReservationStore,
	check_reservation,
	find_conflict,
	find_overlapping_pairs,
	ranges_overlap,
	reservation_for_day,
	sort_reservations,
	validate_reservation,
)
from .errors import (
	EmptyNameError,
	InvalidMonthError,
	InvertedRangeError,
	MalformedDateError,
	ReservationConflictError,
	ReservationError,
	ReservationNotFoundError,
	ReservationStorageError,
)
from .month_grid import CalendarCell, CalendarDay, annotate_month, build_month, month_rows, shift_month
from .yaml_store import ReservationRecord, ReservationYamlRepository
from .calendar_view import CalendarView

__all__ = [
	"Reservation",
	"ReservationRequest",
	"ReservationStore",
	"check_reservation",
	"find_conflict",
	"find_overlapping_pairs",
	"ranges_overlap",
	"reservation_for_day",
	"sort_reservations",
	"validate_reservation",
	"EmptyNameError",
	"InvalidMonthError",
	"InvertedRangeError",
	"MalformedDateError",
	"ReservationConflictError",
	"ReservationError",
	"ReservationNotFoundError",
	"ReservationStorageError",
	"CalendarCell",
	"CalendarDay",
	"annotate_month",
	"build_month",
	"month_rows",
	"shift_month",
	"ReservationRecord",
	"ReservationYamlRepository",
	"CalendarView",
]
