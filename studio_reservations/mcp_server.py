from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Any

from mcp.server.fastmcp import FastMCP

from .booking import to_utc
from .config import build_validator, configure_logging, get_settings
from .errors import BookingResult
from .identity import ADMIN_ROLE
from .validator import BookingValidator

mcp = FastMCP(
    "Studio Reservation MCP Server",
    instructions="Expose studio bookings and the booking validator to MCP clients.",
    json_response=True,
)


@lru_cache(maxsize=1)
def _validator() -> BookingValidator:
    return build_validator(get_settings())


def _payload(result: BookingResult[Any]) -> dict[str, Any]:
    if result.error is not None:
        return {"ok": False, **result.error.to_dict()}
    value = result.unwrap()
    if isinstance(value, list):
        return {"ok": True, "reservations": [record.to_dict() for record in value]}
    return {"ok": True, "reservation": value.to_dict()}


@mcp.resource("studio://bookings/today")
def todays_bookings() -> list[dict[str, str]]:
    """List studio bookings for the validator clock's current UTC day."""
    validator = _validator()
    result = validator.list_bookings_for_day(to_utc(validator.clock()).date())
    return [record.to_dict() for record in result.unwrap()]


@mcp.tool()
def list_bookings_for_day(day: str) -> dict[str, Any]:
    """Return bookings intersecting a UTC calendar day (YYYY-MM-DD)."""
    return _payload(_validator().list_bookings_for_day(day))


@mcp.tool()
def list_upcoming_bookings(owner_id: str) -> dict[str, Any]:
    """Return a member's bookings that have not started yet."""
    return _payload(_validator().list_upcoming_bookings_for_owner(owner_id))


@mcp.tool()
def propose_booking(owner_id: str, start_iso: str, end_iso: str) -> dict[str, Any]:
    """Book the studio for a member using ISO timestamps."""
    try:
        start = datetime.fromisoformat(start_iso)
        end = datetime.fromisoformat(end_iso)
    except ValueError:
        return {"ok": False, "error": "bad_request", "message": "start_iso and end_iso must be ISO-8601 timestamps."}
    return _payload(_validator().propose_booking(owner_id, start, end))


@mcp.tool()
def cancel_booking(booking_id: str, requester_id: str, is_admin: bool = False) -> dict[str, Any]:
    """Cancel a booking on behalf of its owner or an administrator.

    The MCP surface trusts its client: ``requester_id`` and ``is_admin`` are
    taken as asserted, so only expose this server to operator tooling.
    """
    roles = (ADMIN_ROLE,) if is_admin else ()
    return _payload(_validator().cancel_booking(booking_id, requester_id, roles=roles))


def main() -> None:
    configure_logging(get_settings())
    mcp.run()


if __name__ == "__main__":
    main()
