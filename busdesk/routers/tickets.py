"""Ticket list and edit pages shared by the admin and sales-agent sections."""
from datetime import date
from typing import Optional
import logging

from fastapi import Request
from pydantic import ValidationError

from busdesk.schemas.ticket import TicketUpdate
from busdesk.schemas.user import Principal
from busdesk.services.api import ApiClient, ApiError, SessionExpiredError
from busdesk.services.tickets import TicketService, extract_unique_routes, filter_tickets
from busdesk.templates_config import templates
from busdesk.workflow.sale import PASSENGER_FIELDS
from busdesk.workflow.validation import validate_passenger

logger = logging.getLogger(__name__)


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def parse_optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


async def ticket_list_context(
    api: ApiClient,
    search: str = "",
    date_filter: Optional[str] = None,
    direction: str = "all"
) -> dict:
    """Tickets, filters and schedules for a ticket table page."""
    error = None
    tickets = []
    schedules = []
    try:
        schedules = await TicketService.list_schedules(api)
        tickets = await TicketService.list_tickets(api)
    except SessionExpiredError:
        raise
    except ApiError as e:
        logger.error(f"Error loading tickets: {e.message}")
        error = e.message

    return {
        "tickets": filter_tickets(tickets, search, parse_date(date_filter), direction),
        "routes": extract_unique_routes(tickets),
        "schedules": schedules,
        "search": search,
        "date_filter": date_filter or "",
        "direction": direction,
        "error": error,
    }


async def render_edit_page(
    request: Request,
    principal: Principal,
    api: ApiClient,
    ticket_id: int,
    base_path: str,
    ticket_path: str,
    error: Optional[str] = None,
    status_code: int = 200
):
    ticket = await TicketService.get_ticket(api, ticket_id)
    schedules = await TicketService.list_schedules(api)
    seat_error = None
    try:
        seats = await TicketService.seats_for_edit(
            api, ticket.schedule_id, ticket.schedule_date, ticket.seat_number
        )
    except SessionExpiredError:
        raise
    except ApiError as e:
        seat_error = e.message
        seats = [ticket.seat_number]

    return templates.TemplateResponse(
        request,
        "tickets/edit.html",
        {
            "principal": principal,
            "ticket": ticket,
            "schedules": schedules,
            "seats": seats,
            "current_seat": ticket.seat_number,
            "seat_error": seat_error,
            "base_path": base_path,
            "ticket_path": ticket_path,
            "error": error,
        },
        status_code=status_code
    )


async def render_edit_seats(
    request: Request,
    api: ApiClient,
    schedule_id: Optional[str],
    schedule_date: Optional[str],
    seat_number: Optional[str]
):
    """Seat options for the edit form after its schedule or date changed."""
    seats = []
    seat_error = None
    resolved_schedule = parse_optional_int(schedule_id)
    current_seat = parse_optional_int(seat_number)
    if resolved_schedule is not None and schedule_date:
        try:
            seats = await TicketService.seats_for_edit(api, resolved_schedule, schedule_date, current_seat)
        except SessionExpiredError:
            raise
        except ApiError as e:
            seat_error = e.message

    return templates.TemplateResponse(
        request,
        "tickets/_seat_options.html",
        {"seats": seats, "current_seat": current_seat, "seat_error": seat_error}
    )


def ticket_update_from_form(form) -> TicketUpdate:
    return TicketUpdate(
        schedule_id=parse_optional_int(form.get("schedule_id")),
        seat_number=parse_optional_int(form.get("seat_number")),
        schedule_date=form.get("schedule_date") or None,
        passenger_name=form.get("passenger_name", ""),
        passenger_surname=form.get("passenger_surname", ""),
        passenger_email=form.get("passenger_email", ""),
        passenger_phone=form.get("passenger_phone", ""),
        driver_id=form.get("driver_id") or None,
        language=form.get("language") or None,
    )


async def submit_ticket_update(api: ApiClient, ticket_id: int, form) -> Optional[str]:
    """Apply an edit form; returns an error message or None on success."""
    passenger_errors = validate_passenger({
        field: form.get(field, "") for field in PASSENGER_FIELDS
    })
    if passenger_errors:
        return "; ".join(passenger_errors.values())
    try:
        changes = ticket_update_from_form(form)
    except ValidationError:
        return "Invalid ticket details"
    try:
        await TicketService.update_ticket(api, ticket_id, changes)
    except SessionExpiredError:
        raise
    except ApiError as e:
        return e.message
    return None
