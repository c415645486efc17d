from collections import defaultdict, deque
from datetime import datetime
from fastapi import APIRouter, Depends, Request, Form
from fastapi.responses import HTMLResponse
import logging

from busdesk.roles import QR_SCANNER_PATH, Role
from busdesk.schemas.user import Principal
from busdesk.services.api import ApiClient, ApiError, SessionExpiredError
from busdesk.services.auth import get_api_client, require_roles
from busdesk.services.driver import DATE_FILTERS, DriverService, filter_tickets_by_date
from busdesk.templates_config import templates

router = APIRouter(prefix=QR_SCANNER_PATH, tags=["qr-scanner"])
logger = logging.getLogger(__name__)

require_driver = require_roles(Role.DRIVER)

# Most recent scans first, per driver
scan_history: dict[int, deque] = defaultdict(lambda: deque(maxlen=50))


async def _scanner_context(principal: Principal, api: ApiClient, date_filter: str) -> dict:
    if date_filter not in DATE_FILTERS:
        date_filter = "today"

    error = None
    tickets = []
    try:
        tickets = await DriverService.get_driver_tickets(api)
    except SessionExpiredError:
        raise
    except ApiError as e:
        error = e.message

    return {
        "principal": principal,
        "tickets": filter_tickets_by_date(tickets, date_filter),
        "validated_count": sum(1 for ticket in tickets if ticket.validated_at),
        "date_filter": date_filter,
        "date_filters": DATE_FILTERS,
        "history": list(scan_history[principal.id]),
        "error": error,
    }


@router.get("", response_class=HTMLResponse)
async def scanner_page(
    request: Request,
    date_filter: str = "today",
    principal: Principal = Depends(require_driver),
    api: ApiClient = Depends(get_api_client)
):
    context = await _scanner_context(principal, api, date_filter)
    return templates.TemplateResponse(request, "scanner/index.html", context)


@router.post("/validate", response_class=HTMLResponse)
async def validate_ticket(
    request: Request,
    ticket_hash: str = Form(...),
    date_filter: str = Form("today"),
    principal: Principal = Depends(require_driver),
    api: ApiClient = Depends(get_api_client)
):
    scanned_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    try:
        result = await DriverService.validate_ticket(api, ticket_hash.strip())
    except SessionExpiredError:
        raise
    except ApiError as e:
        entry = {
            "ticket_id": None,
            "passenger_name": "Unknown",
            "scan_time": scanned_at,
            "success": False,
            "message": e.message,
        }
    else:
        ticket = result.ticket
        entry = {
            "ticket_id": ticket.id if ticket else None,
            "passenger_name": ticket.passenger_full_name if ticket else "Unknown",
            "scan_time": scanned_at,
            "success": True,
            "message": result.message or "Ticket validated",
            "seat_number": ticket.seat_number if ticket else None,
            "schedule_date": ticket.schedule_date if ticket else None,
        }
    scan_history[principal.id].appendleft(entry)

    context = await _scanner_context(principal, api, date_filter)
    context["last_scan"] = entry
    return templates.TemplateResponse(request, "scanner/index.html", context)
