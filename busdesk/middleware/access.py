"""
Role-based access gate for the dashboard.

``decide`` is a pure function of the requested path and the caller's role;
``AccessControlMiddleware`` applies it to every request under the
protected prefix.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Request
from fastapi.responses import RedirectResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from busdesk.roles import (
    DASHBOARD_PATH,
    PROTECTED_PREFIX,
    ROLE_ACCESS_PATTERNS,
    SIGN_IN_PATH,
    Role,
    landing_page,
    parse_role,
)
from busdesk.services.auth import AuthService, clear_session_cookie, get_principal_from_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    redirect_to: Optional[str] = None


ALLOW = AccessDecision(allowed=True)


def redirect(path: str) -> AccessDecision:
    return AccessDecision(allowed=False, redirect_to=path)


def decide(path: str, role: Union[Role, str, None]) -> AccessDecision:
    """Decide whether ``role`` may open ``path``.

    A missing or unrecognised role never gets through. The dashboard root
    is handled before the prefix table, so only admins land there even
    though other roles hold prefixes below it.
    """
    resolved = role if isinstance(role, Role) else parse_role(role)
    if resolved is None:
        return redirect(SIGN_IN_PATH)

    if path == DASHBOARD_PATH:
        if resolved is Role.ADMIN:
            return ALLOW
        return redirect(landing_page(resolved))

    allowed = ROLE_ACCESS_PATTERNS.get(resolved, ())
    if any(path.startswith(prefix) for prefix in allowed):
        return ALLOW
    return redirect(landing_page(resolved))


def is_protected(path: str) -> bool:
    return path == PROTECTED_PREFIX or path.startswith(PROTECTED_PREFIX + "/")


def redirect_response(request: Request, location: str) -> Response:
    """Redirect, telling HTMX to do a full page navigation for partial requests."""
    if request.headers.get("HX-Request") == "true":
        return Response(status_code=204, headers={"HX-Redirect": location})
    return RedirectResponse(url=location, status_code=302)


class AccessControlMiddleware(BaseHTTPMiddleware):
    """Gate every dashboard path by the signed-in principal's role."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not is_protected(path):
            return await call_next(request)

        principal = get_principal_from_request(request)
        role = principal.role if principal else None
        decision = decide(path, role)

        if not decision.allowed:
            logger.info(
                "Access to %s denied for role %s, redirecting to %s",
                path, role.value if role else None, decision.redirect_to
            )
            return redirect_response(request, decision.redirect_to)

        # Full page loads re-check the token with the backend
        is_page_load = request.method == "GET" and request.headers.get("HX-Request") != "true"
        if is_page_load:
            transport = getattr(request.app.state, "api_transport", None)
            if not await AuthService.validate_session(principal, transport=transport):
                logger.info("Token of user %s no longer valid, signing out", principal.id)
                response = redirect_response(request, SIGN_IN_PATH)
                clear_session_cookie(response)
                return response

        request.state.principal = principal
        return await call_next(request)
