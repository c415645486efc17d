from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

import httpx
from jose import JWTError, jwt
from pydantic import ValidationError
from fastapi import Depends, HTTPException, status, Request, Response

from busdesk.config import get_settings
from busdesk.roles import Role
from busdesk.schemas.user import Principal
from busdesk.services.api import ApiClient, ApiError, AuthenticationRequiredError, SessionExpiredError
from busdesk.workflow import sale_dialogs

settings = get_settings()
logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session"


class AuthService:
    @staticmethod
    async def login(
        email: str,
        password: str,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> Optional[Principal]:
        """
        Exchange credentials for a backend token, then load the user it
        belongs to. Returns None when either step fails.
        """
        base_url = settings.api_url.rstrip("/")
        try:
            async with httpx.AsyncClient(timeout=settings.request_timeout, transport=transport) as client:
                login_response = await client.post(
                    f"{base_url}/login",
                    json={"email": email, "password": password}
                )
                token = login_response.json().get("token") if login_response.is_success else None
                if not token:
                    logger.info("Login rejected for %s", email)
                    return None

                user_response = await client.get(
                    f"{base_url}/user",
                    headers={"Authorization": f"Bearer {token}"}
                )
                if not user_response.is_success:
                    logger.info("Could not load user after login for %s", email)
                    return None
                user = user_response.json().get("user")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Login error for {email}: {e}")
            return None

        if not user:
            return None

        try:
            return Principal(
                id=user["id"],
                email=user["email"],
                first_name=user.get("first_name") or "",
                last_name=user.get("last_name") or "",
                phone_number=user.get("phone_number"),
                role=user["role"],
                token=token
            )
        except (KeyError, ValidationError) as e:
            logger.warning(f"Unusable user record for {email}: {e}")
            return None

    @staticmethod
    def create_session_token(principal: Principal, expires_delta: Optional[timedelta] = None) -> str:
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.session_max_age_minutes)
        to_encode = principal.model_dump(mode="json")
        to_encode["sub"] = str(principal.id)
        to_encode["exp"] = datetime.now(timezone.utc) + expires_delta
        return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def decode_session_token(token: str) -> Optional[Principal]:
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except JWTError:
            return None
        payload.pop("sub", None)
        payload.pop("exp", None)
        try:
            return Principal.model_validate(payload)
        except ValidationError:
            # Unknown role or missing claims: no session
            return None

    @staticmethod
    async def validate_session(
        principal: Principal,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> bool:
        """
        Check the backend still accepts the session's token. Network errors
        keep the session; only a rejection ends it.
        """
        client = ApiClient(principal.token, transport=transport)
        try:
            response = await client.get("/user")
        except (AuthenticationRequiredError, SessionExpiredError):
            return False
        except ApiError as e:
            logger.warning(f"Error checking token: {e}")
            return True
        return response.is_success


def get_principal_from_request(request: Request) -> Optional[Principal]:
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None
    return AuthService.decode_session_token(token)


def get_current_principal(request: Request) -> Optional[Principal]:
    principal = getattr(request.state, "principal", None)
    if principal is not None:
        return principal
    return get_principal_from_request(request)


def get_current_principal_required(
    principal: Optional[Principal] = Depends(get_current_principal)
) -> Principal:
    if principal is None:
        raise AuthenticationRequiredError("Not authenticated")
    return principal


def require_roles(*roles: Role):
    """Dependency that admits only principals holding one of ``roles``."""

    def dependency(principal: Principal = Depends(get_current_principal_required)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to this page"
            )
        return principal

    return dependency


def get_api_client(
    request: Request,
    principal: Principal = Depends(get_current_principal_required)
) -> ApiClient:
    def sign_out():
        logger.info("Backend rejected the token of user %s, signing out", principal.id)
        sale_dialogs.discard(principal.id)

    return ApiClient(
        principal.token,
        on_unauthorized=sign_out,
        transport=getattr(request.app.state, "api_transport", None)
    )


def set_session_cookie(response: Response, token: str, request: Request):
    is_secure = (
        request.url.scheme == "https" or
        request.headers.get("x-forwarded-proto") == "https"
    )

    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=settings.session_max_age_minutes * 60,
        samesite="lax",
        secure=is_secure
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(key=SESSION_COOKIE_NAME)
