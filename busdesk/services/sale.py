import logging
from typing import Any

from pydantic import ValidationError

from busdesk.schemas.ticket import DEFAULT_PAYMENT_METHODS, SaleRequest, Ticket
from busdesk.services.api import ApiClient, ApiError, SessionExpiredError, error_message_from, read_json

logger = logging.getLogger(__name__)


def parse_seat_list(value: str) -> list[int]:
    """Turn the backend's ``"1, 2, 3"`` seat string into seat numbers."""
    if not value:
        return []
    seats = []
    for part in value.split(","):
        part = part.strip()
        if part:
            seats.append(int(part))
    return seats


class SaleService:
    @staticmethod
    async def get_available_seats(api: ApiClient, schedule_id: int, schedule_date: str) -> list[int]:
        """Seats not yet sold for the schedule on the given date."""
        response = await api.get(
            "/schedules/available-seats",
            params={"schedule_id": schedule_id, "schedule_date": schedule_date}
        )
        if not response.is_success:
            raise ApiError("Could not load available seats", status_code=response.status_code)

        data = read_json(response, "Could not load available seats")
        try:
            return parse_seat_list(data.get("available_seats") or "")
        except (AttributeError, ValueError):
            logger.error("Malformed available_seats payload: %r", data)
            raise ApiError("Could not load available seats")

    @staticmethod
    async def sell_tickets(api: ApiClient, sale: SaleRequest) -> Any:
        """
        Submit one atomic sale. The backend persists all tickets or none;
        on rejection its ``message`` is passed through to the agent.
        """
        logger.info(
            "Selling %s ticket(s) for schedule %s on %s, seats %s",
            sale.ticket_count, sale.schedule_id, sale.schedule_date, sale.seat_numbers
        )
        response = await api.post("/tickets/sell", json=sale.model_dump())
        if not response.is_success:
            message = error_message_from(response, "Failed to sell tickets")
            logger.error("Sale rejected with status %s: %s", response.status_code, message)
            raise ApiError(message, status_code=response.status_code)
        return read_json(response, "Failed to sell tickets")

    @staticmethod
    async def get_payment_methods(api: ApiClient) -> list[str]:
        """Payment methods offered by the backend, or the default list on any failure."""
        try:
            response = await api.get("/payment-methods")
        except SessionExpiredError:
            raise
        except ApiError:
            return list(DEFAULT_PAYMENT_METHODS)

        if not response.is_success:
            return list(DEFAULT_PAYMENT_METHODS)
        try:
            methods = response.json()
        except ValueError:
            return list(DEFAULT_PAYMENT_METHODS)
        if not isinstance(methods, list) or not methods:
            return list(DEFAULT_PAYMENT_METHODS)
        return [str(method) for method in methods]

    @staticmethod
    async def get_agent_tickets(api: ApiClient) -> list[Ticket]:
        data = await api.fetch_json("GET", "/salesagent/tickets", "Failed to fetch sales agent tickets")
        try:
            return [Ticket.model_validate(item) for item in data]
        except (TypeError, ValidationError):
            raise ApiError("Failed to fetch sales agent tickets")

    @staticmethod
    async def cancel_ticket(api: ApiClient, ticket_id: int) -> None:
        response = await api.post(f"/tickets/{ticket_id}/cancel")
        if not response.is_success:
            raise ApiError("Failed to cancel ticket", status_code=response.status_code)

    @staticmethod
    async def get_sales_report(api: ApiClient, start_date: str, end_date: str) -> Any:
        return await api.fetch_json(
            "GET",
            "/salesagent/reports",
            "Failed to generate sales report",
            params={"start_date": start_date, "end_date": end_date}
        )
