import logging
from datetime import date
from typing import Optional

from pydantic import ValidationError

from busdesk.schemas.ticket import (
    Destination, RouteOption, Schedule, Ticket, TicketCreate, TicketUpdate
)
from busdesk.schemas.user import User
from busdesk.services.api import ApiClient, ApiError
from busdesk.services.sale import SaleService

logger = logging.getLogger(__name__)


def _parse_list(model, data, error_message: str) -> list:
    if not isinstance(data, list):
        logger.error("Expected a list from the API, got %s", type(data).__name__)
        raise ApiError(error_message)
    try:
        return [model.model_validate(item) for item in data]
    except ValidationError as e:
        logger.error(f"Malformed {model.__name__} payload: {e}")
        raise ApiError(error_message)


class TicketService:
    @staticmethod
    async def list_tickets(api: ApiClient) -> list[Ticket]:
        data = await api.fetch_json("GET", "/alltickets", "Failed to fetch tickets")
        return _parse_list(Ticket, data, "Received invalid ticket data format")

    @staticmethod
    async def get_ticket(api: ApiClient, ticket_id: int) -> Ticket:
        data = await api.fetch_json("GET", f"/alltickets/{ticket_id}", "Failed to fetch ticket details")
        try:
            return Ticket.model_validate(data)
        except ValidationError:
            raise ApiError("Failed to fetch ticket details")

    @staticmethod
    async def create_ticket(api: ApiClient, ticket: TicketCreate) -> dict:
        return await api.fetch_json(
            "POST", "/tickets", "Failed to create ticket", json=ticket.model_dump()
        )

    @staticmethod
    async def update_ticket(api: ApiClient, ticket_id: int, changes: TicketUpdate) -> dict:
        return await api.fetch_json(
            "PUT", f"/tickets/{ticket_id}", "Failed to update ticket",
            json=changes.model_dump(exclude_unset=True)
        )

    @staticmethod
    async def delete_ticket(api: ApiClient, ticket_id: int) -> None:
        response = await api.delete(f"/tickets/{ticket_id}")
        if not response.is_success:
            raise ApiError("Failed to delete ticket", status_code=response.status_code)

    @staticmethod
    def download_url(api: ApiClient, ticket_hash: str) -> str:
        return api.url_for(f"/tickets/download/{ticket_hash}")

    @staticmethod
    async def list_destinations(api: ApiClient) -> list[Destination]:
        data = await api.fetch_json("GET", "/destinations", "Failed to fetch destinations")
        return _parse_list(Destination, data, "Failed to fetch destinations")

    @staticmethod
    async def list_schedules(api: ApiClient) -> list[Schedule]:
        data = await api.fetch_json("GET", "/schedules", "Failed to fetch schedules")
        return _parse_list(Schedule, data, "Failed to fetch schedules")

    @staticmethod
    async def list_drivers(api: ApiClient) -> list[User]:
        data = await api.fetch_json(
            "GET", "/users", "Failed to fetch drivers", params={"role": "driver"}
        )
        return _parse_list(User, data, "Failed to fetch drivers")

    @staticmethod
    async def seats_for_edit(
        api: ApiClient,
        schedule_id: int,
        schedule_date: str,
        current_seat: Optional[int]
    ) -> list[int]:
        """
        Seats a ticket may be moved to: the free seats plus the seat the
        ticket already holds, so it can be kept unchanged.
        """
        seats = await SaleService.get_available_seats(api, schedule_id, schedule_date)
        if current_seat is not None and current_seat not in seats:
            seats.append(current_seat)
        return sorted(seats)


def filter_tickets(
    tickets: list[Ticket],
    search_query: str = "",
    selected_date: Optional[date] = None,
    selected_direction: str = "all"
) -> list[Ticket]:
    query = (search_query or "").lower()
    result = []
    for ticket in tickets:
        if ticket.schedule is None or ticket.schedule.destination is None:
            continue

        if query and not (
            query in ticket.passenger_full_name.lower()
            or query in (ticket.passenger_email or "").lower()
            or query in str(ticket.id)
        ):
            continue

        if selected_date is not None and ticket.schedule_date != selected_date.isoformat():
            continue

        if selected_direction != "all" and ticket.schedule.destination.route != selected_direction:
            continue

        result.append(ticket)
    return result


def extract_unique_routes(tickets: list[Ticket]) -> list[RouteOption]:
    routes: dict[str, RouteOption] = {}
    for ticket in tickets:
        if ticket.schedule is None or ticket.schedule.destination is None:
            continue
        destination = ticket.schedule.destination
        if destination.route not in routes:
            routes[destination.route] = RouteOption(
                leaves_from=destination.leaves_from,
                arrives_to=destination.arrives_to,
                value=destination.route
            )
    return list(routes.values())


def total_revenue(tickets: list[Ticket]) -> float:
    return sum(ticket.price for ticket in tickets if ticket.price)
