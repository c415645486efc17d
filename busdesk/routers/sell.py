from fastapi import APIRouter, Depends, Request, Form
from fastapi.responses import HTMLResponse, RedirectResponse
from typing import Literal, Optional
import logging

from busdesk.roles import Role, SELL_TICKET_PATH
from busdesk.schemas.user import Principal
from busdesk.services.api import ApiClient, ApiError, SessionExpiredError
from busdesk.services.auth import get_api_client, require_roles
from busdesk.services.sale import SaleService
from busdesk.services.tickets import TicketService
from busdesk.templates_config import templates
from busdesk.routers.tickets import (
    parse_optional_int, render_edit_page, render_edit_seats, submit_ticket_update, ticket_list_context
)
from busdesk.workflow import sale_dialogs
from busdesk.workflow.sale import (
    DateChanged, DialogClosed, DialogOpened, FirstPassengerCopied, LanguageChanged,
    Notify, PassengerFieldChanged, PaymentMethodChanged, ScheduleChanged,
    SeatToggled, SubmitRequested, TicketsSold
)

router = APIRouter(prefix=SELL_TICKET_PATH, tags=["sell-ticket"])
logger = logging.getLogger(__name__)

require_agent = require_roles(Role.SALESAGENT)

TICKET_ITEM_PATH = f"{SELL_TICKET_PATH}/tickets"

PassengerField = Literal["passenger_name", "passenger_surname", "passenger_email", "passenger_phone"]


@router.get("", response_class=HTMLResponse)
async def sell_ticket_page(
    request: Request,
    search: str = "",
    date: Optional[str] = None,
    direction: str = "all",
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    context = await ticket_list_context(api, search, date, direction)
    dialog = sale_dialogs.get(principal.id)
    context.update({
        "principal": principal,
        "dialog": dialog.state,
        "notices": [],
        "base_path": SELL_TICKET_PATH,
        "ticket_path": TICKET_ITEM_PATH,
        "can_cancel": True,
    })
    return templates.TemplateResponse(request, "sell/index.html", context)


async def _render_dialog(request: Request, principal: Principal, api: ApiClient, event):
    dialog = sale_dialogs.get(principal.id)
    await dialog.dispatch(event, api)

    outbox = dialog.drain()
    notices = [command for command in outbox if isinstance(command, Notify)]
    sold = any(isinstance(command, TicketsSold) for command in outbox)

    schedules = []
    if dialog.state.is_open:
        try:
            schedules = await TicketService.list_schedules(api)
        except SessionExpiredError:
            raise
        except ApiError as e:
            notices.append(Notify("error", "Error", e.message))

    response = templates.TemplateResponse(
        request,
        "sell/_dialog.html",
        {
            "dialog": dialog.state,
            "schedules": schedules,
            "notices": notices,
        }
    )
    if sold:
        # Lets the page reload its ticket table
        response.headers["HX-Trigger"] = "ticketsSold"
    return response


@router.post("/dialog/open", response_class=HTMLResponse)
async def open_dialog(
    request: Request,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await _render_dialog(request, principal, api, DialogOpened())


@router.post("/dialog/close", response_class=HTMLResponse)
async def close_dialog(
    request: Request,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await _render_dialog(request, principal, api, DialogClosed())


@router.post("/dialog/schedule", response_class=HTMLResponse)
async def change_schedule(
    request: Request,
    schedule_id: str = Form(""),
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await _render_dialog(request, principal, api, ScheduleChanged(parse_optional_int(schedule_id)))


@router.post("/dialog/date", response_class=HTMLResponse)
async def change_date(
    request: Request,
    schedule_date: str = Form(""),
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await _render_dialog(request, principal, api, DateChanged(schedule_date))


@router.post("/dialog/seats/{seat}", response_class=HTMLResponse)
async def toggle_seat(
    request: Request,
    seat: int,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await _render_dialog(request, principal, api, SeatToggled(seat))


@router.post("/dialog/passengers/{index}", response_class=HTMLResponse)
async def change_passenger(
    request: Request,
    index: int,
    field: PassengerField = Form(...),
    value: str = Form(""),
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await _render_dialog(request, principal, api, PassengerFieldChanged(index, field, value))


@router.post("/dialog/passengers/{index}/copy-first", response_class=HTMLResponse)
async def copy_first_passenger(
    request: Request,
    index: int,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await _render_dialog(request, principal, api, FirstPassengerCopied(index))


@router.post("/dialog/payment-method", response_class=HTMLResponse)
async def change_payment_method(
    request: Request,
    payment_method: str = Form(...),
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await _render_dialog(request, principal, api, PaymentMethodChanged(payment_method))


@router.post("/dialog/language", response_class=HTMLResponse)
async def change_language(
    request: Request,
    language: str = Form(...),
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await _render_dialog(request, principal, api, LanguageChanged(language))


@router.post("/dialog/submit", response_class=HTMLResponse)
async def submit_sale(
    request: Request,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await _render_dialog(request, principal, api, SubmitRequested())


@router.get("/tickets/{ticket_id}/edit", response_class=HTMLResponse)
async def edit_ticket_page(
    request: Request,
    ticket_id: int,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await render_edit_page(request, principal, api, ticket_id, SELL_TICKET_PATH, TICKET_ITEM_PATH)


@router.get("/tickets/{ticket_id}/seats", response_class=HTMLResponse)
async def edit_ticket_seats(
    request: Request,
    ticket_id: int,
    schedule_id: Optional[str] = None,
    schedule_date: Optional[str] = None,
    seat_number: Optional[str] = None,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return await render_edit_seats(request, api, schedule_id, schedule_date, seat_number)


@router.post("/tickets/{ticket_id}")
async def update_ticket(
    request: Request,
    ticket_id: int,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    form = await request.form()
    error = await submit_ticket_update(api, ticket_id, form)
    if error:
        return await render_edit_page(
            request, principal, api, ticket_id, SELL_TICKET_PATH, TICKET_ITEM_PATH, error=error, status_code=400
        )
    return RedirectResponse(url=SELL_TICKET_PATH, status_code=302)


@router.post("/tickets/{ticket_id}/delete")
async def delete_ticket(
    ticket_id: int,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    await TicketService.delete_ticket(api, ticket_id)
    return RedirectResponse(url=SELL_TICKET_PATH, status_code=302)


@router.post("/tickets/{ticket_id}/cancel")
async def cancel_ticket(
    ticket_id: int,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    await SaleService.cancel_ticket(api, ticket_id)
    return RedirectResponse(url=SELL_TICKET_PATH, status_code=302)


@router.get("/tickets/download/{ticket_hash}")
async def download_ticket(
    ticket_hash: str,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    return RedirectResponse(url=TicketService.download_url(api, ticket_hash), status_code=302)


@router.get("/report", response_class=HTMLResponse)
async def sales_report(
    request: Request,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    tickets = await SaleService.get_agent_tickets(api)
    report = None
    if start_date and end_date:
        report = await SaleService.get_sales_report(api, start_date, end_date)

    return templates.TemplateResponse(
        request,
        "sell/report.html",
        {
            "principal": principal,
            "tickets": tickets,
            "report": report,
            "start_date": start_date or "",
            "end_date": end_date or "",
        }
    )
