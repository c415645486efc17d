from fastapi import APIRouter, Depends, Request, Form
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address
import logging

from busdesk.config import get_settings
from busdesk.roles import SIGN_IN_PATH, landing_page
from busdesk.schemas.user import LoginForm, Principal
from busdesk.services.auth import (
    AuthService, get_current_principal, set_session_cookie, clear_session_cookie
)
from busdesk.templates_config import templates
from busdesk.workflow import sale_dialogs

router = APIRouter(tags=["auth"])
limiter = Limiter(key_func=get_remote_address)
settings = get_settings()
logger = logging.getLogger(__name__)


@router.get("/", response_class=HTMLResponse)
async def login_page(request: Request, principal: Principal = Depends(get_current_principal)):
    if principal and landing_page(principal.role) != SIGN_IN_PATH:
        return RedirectResponse(url=landing_page(principal.role), status_code=302)
    return templates.TemplateResponse(request, "auth/login.html")


@router.post("/auth/login")
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...)
):
    try:
        LoginForm(email=email, password=password)
    except ValidationError:
        return templates.TemplateResponse(
            request,
            "auth/login.html",
            {"email": email, "error": "Enter a valid email and a password of at least 6 characters"},
            status_code=400
        )

    principal = await AuthService.login(
        email, password, transport=getattr(request.app.state, "api_transport", None)
    )
    if principal is None:
        return templates.TemplateResponse(
            request,
            "auth/login.html",
            {"email": email, "error": "Invalid email or password"},
            status_code=400
        )

    logger.info("User %s signed in as %s", principal.id, principal.role.value)
    sale_dialogs.discard(principal.id)
    session_token = AuthService.create_session_token(principal)
    redirect = RedirectResponse(url=landing_page(principal.role), status_code=302)
    set_session_cookie(redirect, session_token, request)
    return redirect


@router.get("/auth/logout")
async def logout(principal: Principal = Depends(get_current_principal)):
    if principal:
        sale_dialogs.discard(principal.id)
    redirect = RedirectResponse(url=SIGN_IN_PATH, status_code=302)
    clear_session_cookie(redirect)
    return redirect
