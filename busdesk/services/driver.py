import logging
from datetime import date, timedelta
from typing import Optional

from pydantic import ValidationError

from busdesk.schemas.ticket import Ticket, ValidationResponse
from busdesk.services.api import ApiClient, ApiError, error_message_from, read_json

logger = logging.getLogger(__name__)

DATE_FILTERS = ("today", "tomorrow", "week", "all")


class DriverService:
    @staticmethod
    async def get_driver_tickets(api: ApiClient) -> list[Ticket]:
        data = await api.fetch_json("GET", "/driver/tickets", "Failed to load tickets")
        if not isinstance(data, list):
            raise ApiError("Failed to load tickets")
        try:
            return [Ticket.model_validate(item) for item in data]
        except ValidationError:
            raise ApiError("Failed to load tickets")

    @staticmethod
    async def validate_ticket(api: ApiClient, ticket_hash: str) -> ValidationResponse:
        """Mark a scanned ticket as used. The backend decides whether it is valid."""
        response = await api.post("/tickets/validate", params={"hash": ticket_hash})
        if not response.is_success:
            message = error_message_from(response, "Ticket validation failed")
            logger.info("Ticket %s rejected: %s", ticket_hash, message)
            raise ApiError(message, status_code=response.status_code)

        data = read_json(response, "Ticket validation failed")
        try:
            return ValidationResponse.model_validate(data)
        except ValidationError:
            raise ApiError("Ticket validation failed")


def filter_tickets_by_date(
    tickets: list[Ticket],
    date_filter: str,
    today: Optional[date] = None
) -> list[Ticket]:
    """Keep tickets for today, tomorrow, the coming week, or all of them."""
    if date_filter == "all":
        return list(tickets)

    today = today or date.today()
    tomorrow = today + timedelta(days=1)
    next_week = today + timedelta(days=7)

    result = []
    for ticket in tickets:
        try:
            ticket_date = date.fromisoformat(ticket.schedule_date[:10])
        except ValueError:
            continue

        if date_filter == "tomorrow":
            keep = ticket_date == tomorrow
        elif date_filter == "week":
            keep = today <= ticket_date <= next_week
        else:
            keep = ticket_date == today

        if keep:
            result.append(ticket)
    return result
