from fastapi import APIRouter, Depends, Request, Form
from fastapi.responses import HTMLResponse, RedirectResponse
from typing import Optional

from busdesk.roles import CUSTOMERS_PATH, Role
from busdesk.schemas.user import Principal
from busdesk.services.api import ApiClient
from busdesk.services.auth import get_api_client, require_roles
from busdesk.services.users import CUSTOMER_STATUSES, CustomerService, status_color, status_label
from busdesk.templates_config import templates

router = APIRouter(prefix=CUSTOMERS_PATH, tags=["customers"])

require_agent = require_roles(Role.SALESAGENT)


@router.get("", response_class=HTMLResponse)
async def customers_page(
    request: Request,
    search: Optional[str] = None,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    customers = await CustomerService.get_customers(api)
    if search:
        query = search.lower()
        customers = [
            customer for customer in customers
            if query in f"{customer.first_name} {customer.last_name}".lower()
            or query in customer.email.lower()
            or query in (customer.phone_number or "")
        ]

    return templates.TemplateResponse(
        request,
        "customers/index.html",
        {
            "principal": principal,
            "customers": customers,
            "search": search,
            "statuses": CUSTOMER_STATUSES,
            "status_label": status_label,
            "status_color": status_color,
        }
    )


@router.get("/{customer_id}", response_class=HTMLResponse)
async def customer_detail(
    request: Request,
    customer_id: int,
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    customer = await CustomerService.get_customer(api, customer_id)
    tickets = await CustomerService.get_customer_tickets(api, customer_id)
    return templates.TemplateResponse(
        request,
        "customers/detail.html",
        {
            "principal": principal,
            "customer": customer,
            "tickets": tickets,
            "statuses": CUSTOMER_STATUSES,
            "status_label": status_label,
            "status_color": status_color,
        }
    )


@router.post("/{customer_id}/status")
async def update_status(
    customer_id: int,
    status_id: int = Form(...),
    principal: Principal = Depends(require_agent),
    api: ApiClient = Depends(get_api_client)
):
    await CustomerService.update_customer_status(api, customer_id, status_id)
    return RedirectResponse(url=f"{CUSTOMERS_PATH}/{customer_id}", status_code=302)
