from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from pydantic import ValidationError
from typing import Optional
import logging

from busdesk.roles import DASHBOARD_PATH, TICKETS_PATH, USERS_PATH, Role
from busdesk.schemas.ticket import TicketCreate
from busdesk.schemas.user import Principal, UserForm
from busdesk.services.api import ApiClient, ApiError
from busdesk.services.auth import get_api_client, require_roles
from busdesk.services.catalog import FORMS
from busdesk.services.excel import EXPORTS, XLSX_MEDIA_TYPE, ExcelService
from busdesk.services.tickets import TicketService, total_revenue
from busdesk.services.users import UserService
from busdesk.templates_config import templates
from busdesk.routers.tickets import (
    render_edit_page, render_edit_seats, submit_ticket_update, ticket_list_context
)

router = APIRouter(prefix=DASHBOARD_PATH, tags=["admin"])
logger = logging.getLogger(__name__)

get_current_admin = require_roles(Role.ADMIN)

# URL segment -> catalog resource key
CATALOG_PAGES = {
    "directions": "destinations",
    "schedule": "schedules",
    "statuses": "statuses",
}


@router.get("", response_class=HTMLResponse)
async def admin_dashboard(
    request: Request,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    tickets = await TicketService.list_tickets(api)
    users = await UserService.get_users(api)

    recent_tickets = sorted(tickets, key=lambda ticket: ticket.id, reverse=True)[:5]

    return templates.TemplateResponse(
        request,
        "admin/dashboard.html",
        {
            "principal": principal,
            "total_tickets": len(tickets),
            "validated_tickets": sum(1 for ticket in tickets if ticket.validated_at),
            "total_users": len(users),
            "revenue": total_revenue(tickets),
            "recent_tickets": recent_tickets,
            "exports": EXPORTS,
        }
    )


@router.get("/export/{export}")
async def export_excel(
    export: str,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    if export not in EXPORTS:
        raise HTTPException(status_code=404, detail="Unknown export")
    content = await ExcelService.download(api, export)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export}.xlsx"'}
    )


@router.get("/tickets", response_class=HTMLResponse)
async def admin_tickets(
    request: Request,
    search: str = "",
    date: Optional[str] = None,
    direction: str = "all",
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    context = await ticket_list_context(api, search, date, direction)
    context.update({
        "principal": principal,
        "drivers": await TicketService.list_drivers(api),
        "base_path": TICKETS_PATH,
        "ticket_path": TICKETS_PATH,
    })
    return templates.TemplateResponse(request, "tickets/index.html", context)


@router.post("/tickets")
async def create_ticket(
    request: Request,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    form = await request.form()
    try:
        ticket = TicketCreate(
            schedule_id=form.get("schedule_id"),
            seat_number=form.get("seat_number"),
            schedule_date=form.get("schedule_date"),
            passenger_name=form.get("passenger_name", ""),
            passenger_surname=form.get("passenger_surname", ""),
            passenger_email=form.get("passenger_email", ""),
            passenger_phone=form.get("passenger_phone", ""),
            purchaser_id=principal.id,
            driver_id=form.get("driver_id") or None,
            payment_method=form.get("payment_method") or "cash",
            language=form.get("language") or "ka",
        )
    except ValidationError:
        raise ApiError("Invalid ticket details", status_code=400)

    await TicketService.create_ticket(api, ticket)
    return RedirectResponse(url=TICKETS_PATH, status_code=302)


@router.get("/tickets/{ticket_id}/edit", response_class=HTMLResponse)
async def admin_edit_ticket_page(
    request: Request,
    ticket_id: int,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    return await render_edit_page(request, principal, api, ticket_id, TICKETS_PATH, TICKETS_PATH)


@router.get("/tickets/{ticket_id}/seats", response_class=HTMLResponse)
async def admin_edit_ticket_seats(
    request: Request,
    ticket_id: int,
    schedule_id: Optional[str] = None,
    schedule_date: Optional[str] = None,
    seat_number: Optional[str] = None,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    return await render_edit_seats(request, api, schedule_id, schedule_date, seat_number)


@router.post("/tickets/{ticket_id}")
async def admin_update_ticket(
    request: Request,
    ticket_id: int,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    form = await request.form()
    error = await submit_ticket_update(api, ticket_id, form)
    if error:
        return await render_edit_page(
            request, principal, api, ticket_id, TICKETS_PATH, TICKETS_PATH, error=error, status_code=400
        )
    return RedirectResponse(url=TICKETS_PATH, status_code=302)


@router.post("/tickets/{ticket_id}/delete")
async def admin_delete_ticket(
    ticket_id: int,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    await TicketService.delete_ticket(api, ticket_id)
    return RedirectResponse(url=TICKETS_PATH, status_code=302)


@router.get("/tickets/download/{ticket_hash}")
async def admin_download_ticket(
    ticket_hash: str,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    return RedirectResponse(url=TicketService.download_url(api, ticket_hash), status_code=302)


@router.get("/users", response_class=HTMLResponse)
async def admin_users(
    request: Request,
    role: Optional[str] = None,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    users = await UserService.get_users(api, role)
    return templates.TemplateResponse(
        request,
        "admin/users.html",
        {
            "principal": principal,
            "users": users,
            "role": role,
            "roles": [r.value for r in Role],
        }
    )


def _user_form(form) -> UserForm:
    try:
        return UserForm(
            email=form.get("email", ""),
            first_name=form.get("first_name", ""),
            last_name=form.get("last_name", ""),
            role=form.get("role", ""),
            phone_number=form.get("phone_number"),
            password=form.get("password"),
        )
    except ValidationError:
        raise ApiError("Invalid user details", status_code=400)


@router.post("/users")
async def create_user(
    request: Request,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    await UserService.create_user(api, _user_form(await request.form()))
    return RedirectResponse(url=USERS_PATH, status_code=302)


@router.get("/users/{user_id}", response_class=HTMLResponse)
async def edit_user_page(
    request: Request,
    user_id: int,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    user = await UserService.get_user(api, user_id)
    return templates.TemplateResponse(
        request,
        "admin/user_edit.html",
        {
            "principal": principal,
            "user": user,
            "roles": [r.value for r in Role],
        }
    )


@router.post("/users/{user_id}")
async def update_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    await UserService.update_user(api, user_id, _user_form(await request.form()))
    return RedirectResponse(url=USERS_PATH, status_code=302)


@router.post("/users/{user_id}/delete")
async def delete_user(
    user_id: int,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    if user_id == principal.id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    await UserService.delete_user(api, user_id)
    return RedirectResponse(url=USERS_PATH, status_code=302)


def _catalog(page: str):
    key = CATALOG_PAGES.get(page)
    if key is None:
        raise HTTPException(status_code=404, detail="Not found")
    return FORMS[key]


@router.get("/{page}", response_class=HTMLResponse)
async def catalog_page(
    request: Request,
    page: str,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    resource, _ = _catalog(page)
    items = await resource.list_all(api)
    context = {
        "principal": principal,
        "page": page,
        "noun": resource.noun,
        "items": items,
    }
    if page == "schedule":
        context["destinations"] = await FORMS["destinations"][0].list_all(api)
    return templates.TemplateResponse(request, f"admin/{page}.html", context)


def _catalog_form(form_model, form):
    try:
        return form_model.model_validate(dict(form))
    except ValidationError:
        raise ApiError("Invalid details", status_code=400)


@router.post("/{page}")
async def create_catalog_item(
    request: Request,
    page: str,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    resource, form_model = _catalog(page)
    await resource.create(api, _catalog_form(form_model, await request.form()))
    return RedirectResponse(url=f"{DASHBOARD_PATH}/{page}", status_code=302)


@router.post("/{page}/{item_id}")
async def update_catalog_item(
    request: Request,
    page: str,
    item_id: int,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    resource, form_model = _catalog(page)
    await resource.update(api, item_id, _catalog_form(form_model, await request.form()))
    return RedirectResponse(url=f"{DASHBOARD_PATH}/{page}", status_code=302)


@router.post("/{page}/{item_id}/delete")
async def delete_catalog_item(
    page: str,
    item_id: int,
    principal: Principal = Depends(get_current_admin),
    api: ApiClient = Depends(get_api_client)
):
    resource, _ = _catalog(page)
    await resource.delete(api, item_id)
    return RedirectResponse(url=f"{DASHBOARD_PATH}/{page}", status_code=302)
