import logging

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from busdesk.config import get_settings
from busdesk.middleware.access import AccessControlMiddleware, redirect_response
from busdesk.middleware.security import setup_security_middleware
from busdesk.roles import SIGN_IN_PATH
from busdesk.routers import (
    auth_router,
    sell_router,
    customers_router,
    scanner_router,
    admin_router
)
from busdesk.routers.auth import limiter
from busdesk.services.api import ApiError, AuthenticationRequiredError, SessionExpiredError
from busdesk.services.auth import clear_session_cookie, get_principal_from_request
from busdesk.templates_config import templates
from busdesk.workflow import sale_dialogs

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Busdesk",
    description="Back-office dashboard for bus ticket sales",
    version="1.0.0"
)

# Transport for calls to the ticketing API; None means the network
app.state.api_transport = None

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Innermost first: the gate runs after the security middleware
app.add_middleware(AccessControlMiddleware)
setup_security_middleware(app, allowed_hosts=settings.allowed_hosts)

# Role-specific routers before the admin catch-all pages
app.include_router(auth_router)
app.include_router(sell_router)
app.include_router(customers_router)
app.include_router(scanner_router)
app.include_router(admin_router)


@app.exception_handler(SessionExpiredError)
@app.exception_handler(AuthenticationRequiredError)
async def sign_out_handler(request: Request, exc: ApiError):
    principal = get_principal_from_request(request)
    if principal:
        sale_dialogs.discard(principal.id)
        logger.info("Signing out user %s: %s", principal.id, exc.message)
    response = redirect_response(request, SIGN_IN_PATH)
    clear_session_cookie(response)
    return response


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    status_code = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 502
    return templates.TemplateResponse(
        request,
        "errors/api.html",
        {"message": exc.message},
        status_code=status_code
    )


@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    return templates.TemplateResponse(
        request,
        "errors/404.html",
        status_code=404
    )


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
    return templates.TemplateResponse(
        request,
        "errors/500.html",
        status_code=500
    )
