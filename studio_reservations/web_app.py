from __future__ import annotations

import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Mapping

from flask import Flask, jsonify, request

from .booking import ReservationRecord, to_utc
from .config import Settings, build_store, configure_logging, get_settings
from .errors import BookingError, BookingErrorKind, ReservationStorageError
from .events import EventHub
from .identity import Identity, identity_from_headers
from .store import ReservationStore
from .validator import BookingValidator
from .yaml_store import ReservationYamlRepository

STATUS_BY_ERROR: dict[BookingErrorKind, int] = {
    BookingErrorKind.UNAUTHENTICATED: 401,
    BookingErrorKind.INVALID_INTERVAL: 422,
    BookingErrorKind.SLOT_UNAVAILABLE: 409,
    BookingErrorKind.STORE_UNAVAILABLE: 503,
    BookingErrorKind.FORBIDDEN: 403,
    BookingErrorKind.NOT_FOUND: 404,
}

NO_CACHE = "no-cache, no-store, must-revalidate"


def create_app(
    data_dir: str | Path = "data",
    now_provider: Callable[[], datetime] | None = None,
    *,
    store: ReservationStore | None = None,
    identity_resolver: Callable[[Mapping[str, str]], Identity] | None = None,
    events: EventHub | None = None,
) -> Flask:
    app = Flask(__name__)
    reservation_store = store if store is not None else ReservationYamlRepository(data_dir)
    validator = BookingValidator(reservation_store, clock=now_provider, events=events)
    resolve_identity = identity_resolver or identity_from_headers
    started_at = time.monotonic()

    def _current_identity() -> Identity:
        return resolve_identity(request.headers)

    def _error_response(error: BookingError) -> Any:
        return jsonify({"ok": False, **error.to_dict()}), STATUS_BY_ERROR[error.kind]

    def _bad_request(message: str) -> Any:
        return jsonify({"ok": False, "error": "bad_request", "message": message}), 400

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type,X-Member-Id,X-Member-Roles"
        return response

    @app.post("/api/bookings")
    def propose_booking() -> Any:
        identity = _current_identity()
        if identity.resolved_owner_id is None:
            return _error_response(BookingError.of(BookingErrorKind.UNAUTHENTICATED))

        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return _bad_request("Request body must be a JSON object with start and end.")
        try:
            start = datetime.fromisoformat(str(payload.get("start", "")).strip())
            end = datetime.fromisoformat(str(payload.get("end", "")).strip())
        except ValueError:
            return _bad_request("start and end must be ISO-8601 timestamps.")

        result = validator.propose_booking(identity.resolved_owner_id, start, end)
        if result.error is not None:
            return _error_response(result.error)
        return jsonify({"ok": True, "reservation": _serialize(result.unwrap(), identity)}), 201

    @app.get("/api/bookings")
    def list_bookings_for_day() -> Any:
        day = str(request.args.get("date", "")).strip()
        if not day:
            day = to_utc(validator.clock()).date().isoformat()

        result = validator.list_bookings_for_day(day)
        if result.error is not None:
            return _error_response(result.error)

        identity = _current_identity()
        return jsonify(
            {
                "ok": True,
                "date": day,
                "reservations": [_serialize(record, identity) for record in result.unwrap()],
            }
        )

    @app.get("/api/my-bookings")
    def list_my_bookings() -> Any:
        identity = _current_identity()
        result = validator.list_upcoming_bookings_for_owner(identity.resolved_owner_id)
        if result.error is not None:
            return _error_response(result.error)
        return jsonify({"ok": True, "reservations": [_serialize(record, identity) for record in result.unwrap()]})

    @app.post("/api/bookings/<booking_id>/cancel")
    def cancel_booking(booking_id: str) -> Any:
        identity = _current_identity()
        result = validator.cancel_booking(booking_id, identity.resolved_owner_id, roles=identity.roles)
        if result.error is not None:
            return _error_response(result.error)
        return jsonify({"ok": True, "reservation": _serialize(result.unwrap(), identity)})

    @app.get("/api/health")
    def health() -> Any:
        request_started = time.perf_counter()
        now = to_utc(validator.clock())
        store_status = "healthy"
        try:
            reservation_store.find(start=now, end=now + timedelta(seconds=1))
        except ReservationStorageError as error:
            app.logger.error("Health check store probe failed: %s", error)
            store_status = "unhealthy"
        store_latency_ms = round((time.perf_counter() - request_started) * 1000, 2)

        healthy = store_status == "healthy"
        response = jsonify(
            {
                "status": "healthy" if healthy else "unhealthy",
                "timestamp": now.isoformat(timespec="seconds"),
                "uptime_seconds": round(time.monotonic() - started_at, 3),
                "checks": {"store": {"status": store_status, "latency_ms": store_latency_ms}},
            }
        )
        response.status_code = 200 if healthy else 503
        response.headers["Cache-Control"] = NO_CACHE
        response.headers["X-Health-Check"] = "pass" if healthy else "fail"
        return response

    return app


def _serialize(record: ReservationRecord, identity: Identity) -> dict[str, Any]:
    return {
        **record.to_dict(),
        "is_mine": identity.resolved_owner_id == record.owner_id,
    }


def main(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    configure_logging(settings)
    app = create_app(settings.data_dir, store=build_store(settings))
    app.run(host=settings.host, port=settings.port, debug=False)


if __name__ == "__main__":
    main()
