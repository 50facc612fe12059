from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from . import ReservationYamlRepository
from .booking import check_reservation, sort_reservations
from .config import load_settings
from .errors import GENERIC_FAILURE_MESSAGE, ReservationError, ReservationStorageError
from .month_grid import WEEKDAY_NAMES, annotate_month, month_title

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "validation": 400,
    "conflict": 409,
    "not_found": 404,
    "unexpected": 500,
}


def create_app(
    data_dir: str | Path = "data",
    now_provider: Callable[[], datetime] | None = None,
    holiday_country: str | None = None,
) -> Flask:
    app = Flask(__name__)
    repository = ReservationYamlRepository(data_dir)
    clock: Callable[[], datetime] = now_provider or datetime.now

    def _error_response(error: ReservationError) -> Any:
        message = GENERIC_FAILURE_MESSAGE if isinstance(error, ReservationStorageError) else str(error)
        payload = {"ok": False, "error": message, "kind": error.kind, "category": error.category}
        return jsonify(payload), ERROR_STATUS.get(error.category, 500)

    def _payload() -> dict[str, Any]:
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}

    @app.errorhandler(ReservationError)
    def handle_reservation_error(error: ReservationError) -> Any:
        if isinstance(error, ReservationStorageError):
            logger.error("Reservation store failure", exc_info=error)
        return _error_response(error)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception) -> Any:
        if isinstance(error, HTTPException):
            return error
        logger.error("Unexpected failure while handling %s %s", request.method, request.path, exc_info=error)
        return jsonify({"ok": False, "error": GENERIC_FAILURE_MESSAGE, "kind": "store_failure", "category": "unexpected"}), 500

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.get("/api/reservations")
    def list_reservations() -> Any:
        records = sort_reservations(repository.list_all())
        return jsonify({"ok": True, "reservations": [record.to_dict() for record in records]})

    @app.post("/api/reservations")
    def create_reservation() -> Any:
        payload = _payload()
        created = repository.insert(
            _text(payload.get("name")),
            _text(payload.get("start_date")),
            _text(payload.get("end_date")),
            now=clock(),
        )
        return jsonify({"ok": True, "reservation": created.to_dict()})

    @app.put("/api/reservations")
    def update_reservation() -> Any:
        payload = _payload()
        reservation_id = _text(payload.get("id")).strip()
        if not reservation_id:
            return jsonify({"ok": False, "error": "id is required.", "kind": "not_found", "category": "not_found"}), 404

        updated = repository.update(
            reservation_id,
            _text(payload.get("name")),
            _text(payload.get("start_date")),
            _text(payload.get("end_date")),
            now=clock(),
        )
        return jsonify({"ok": True, "reservation": updated.to_dict()})

    @app.delete("/api/reservations")
    def delete_reservation() -> Any:
        payload = _payload()
        reservation_id = _text(payload.get("id")).strip()
        if not reservation_id:
            return jsonify({"ok": False, "error": "id is required.", "kind": "not_found", "category": "not_found"}), 404

        deleted = repository.delete(reservation_id, now=clock())
        return jsonify({"ok": True, "reservation": deleted.to_dict()})

    @app.post("/api/reservations/check")
    def check_reservation_request() -> Any:
        payload = _payload()
        exclude_id = _text(payload.get("id")).strip() or None
        accepted = check_reservation(
            _text(payload.get("name")),
            _text(payload.get("start_date")),
            _text(payload.get("end_date")),
            repository.list_all(),
            exclude_id=exclude_id,
        )
        return jsonify(
            {
                "ok": True,
                "available": True,
                "request": {
                    "name": accepted.name,
                    "start_date": accepted.start_date,
                    "end_date": accepted.end_date,
                },
            }
        )

    @app.get("/api/calendar")
    def get_calendar() -> Any:
        now = clock()
        try:
            year = int(request.args.get("year", now.year))
            month0 = int(request.args.get("month", now.month - 1))
        except ValueError:
            return jsonify({"ok": False, "error": "year and month must be integers.", "kind": "invalid_month", "category": "validation"}), 400

        days = annotate_month(year, month0, repository.list_all(), holiday_country=holiday_country)
        anomalies = repository.find_overlap_anomalies(now=now)
        return jsonify(
            {
                "ok": True,
                "year": year,
                "month": month0,
                "title": month_title(year, month0),
                "weekdays": WEEKDAY_NAMES,
                "days": [day.to_dict() for day in days],
                "anomalies": [[first.reservation_id, second.reservation_id] for first, second in anomalies],
            }
        )

    return app


def _text(value: Any) -> str:
    return "" if value is None else str(value)


if __name__ == "__main__":
    settings = load_settings()
    logging.basicConfig(level=logging.INFO)
    app = create_app(settings.data_dir, holiday_country=settings.holiday_country)
    app.run(host=settings.host, port=settings.port, debug=False)
