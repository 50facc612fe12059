from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from house_calendar import ReservationYamlRepository, annotate_month, sort_reservations
from house_calendar.config import load_settings
from house_calendar.month_grid import month_title

mcp = FastMCP(
    "House Calendar MCP Server",
    instructions="Create, edit and delete date-range reservations of the shared house calendar.",
    json_response=True,
)

SETTINGS = load_settings()
REPOSITORY: ReservationYamlRepository | None = None


def _repository() -> ReservationYamlRepository:
    global REPOSITORY
    if REPOSITORY is None:
        REPOSITORY = ReservationYamlRepository(SETTINGS.data_dir)
    return REPOSITORY


@mcp.resource("reservation://reservations")
async def reservations_resource() -> list[dict[str, str]]:
    """All reservations ordered by start date."""
    return list_reservations()


@mcp.tool()
def list_reservations() -> list[dict[str, str]]:
    """Return every reservation ordered by start date."""
    return [record.to_dict() for record in sort_reservations(_repository().list_all())]


@mcp.tool()
def create_reservation(name: str, start_date: str, end_date: str) -> dict[str, str]:
    """Reserve the house from start_date to end_date inclusive (YYYY-MM-DD)."""
    return _repository().insert(name, start_date, end_date).to_dict()


@mcp.tool()
def update_reservation(reservation_id: str, name: str, start_date: str, end_date: str) -> dict[str, str]:
    """Change the holder or dates of an existing reservation."""
    return _repository().update(reservation_id, name, start_date, end_date).to_dict()


@mcp.tool()
def delete_reservation(reservation_id: str) -> dict[str, str]:
    """Delete a reservation."""
    return _repository().delete(reservation_id).to_dict()


@mcp.tool()
def month_calendar(year: int, month: int) -> dict[str, Any]:
    """Return the 6x7 grid of a month (month is zero-based) with the reservation of each day."""
    days = annotate_month(year, month, _repository().list_all(), holiday_country=SETTINGS.holiday_country)
    return {
        "title": month_title(year, month),
        "days": [day.to_dict() for day in days],
    }


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
