"""
Token-attaching client for the external ticketing API.

Every backend call in the dashboard goes through ``ApiClient.request``.
A 401 or 403 from the backend means the session is no longer valid: the
client fires its sign-out hook once and raises ``SessionExpiredError``,
which the application turns into a global sign-out.
"""
import logging
from typing import Any, Callable, Optional

import httpx

from busdesk.config import get_settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A failed backend call, carrying a message that is safe to show."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationRequiredError(ApiError):
    def __init__(self, message: str = "No authentication token found"):
        super().__init__(message, status_code=401)


class SessionExpiredError(ApiError):
    def __init__(self, message: str = "Session expired. Please sign in again.", status_code: int = 401):
        super().__init__(message, status_code=status_code)


UNAUTHORIZED_STATUSES = {401, 403}


class ApiClient:
    def __init__(
        self,
        token: Optional[str],
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.token = token
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.on_unauthorized = on_unauthorized
        self.transport = transport
        self.signed_out = False

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _sign_out(self):
        if self.signed_out:
            return
        self.signed_out = True
        if self.on_unauthorized is not None:
            self.on_unauthorized()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None
    ) -> httpx.Response:
        if not self.token:
            raise AuthenticationRequiredError()

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    method,
                    self.url_for(path),
                    params=params,
                    json=json,
                    headers=headers
                )
        except httpx.TimeoutException:
            logger.warning("API request timed out: %s %s", method, path)
            raise ApiError("The request timed out")
        except httpx.HTTPError as e:
            logger.error("API request failed: %s %s: %s", method, path, e)
            raise ApiError("Could not reach the server")

        if response.status_code in UNAUTHORIZED_STATUSES:
            logger.info("Token invalid (%s response), signing out", response.status_code)
            self._sign_out()
            raise SessionExpiredError(status_code=response.status_code)

        return response

    async def get(self, path: str, params: Optional[dict] = None) -> httpx.Response:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, params: Optional[dict] = None) -> httpx.Response:
        return await self.request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None) -> httpx.Response:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> httpx.Response:
        return await self.request("DELETE", path)

    async def fetch_json(
        self,
        method: str,
        path: str,
        error_message: str,
        params: Optional[dict] = None,
        json: Any = None
    ) -> Any:
        """Send a request and return its JSON body, or raise ApiError(error_message)."""
        response = await self.request(method, path, params=params, json=json)
        if not response.is_success:
            logger.error("API request %s %s failed with status %s", method, path, response.status_code)
            raise ApiError(error_message, status_code=response.status_code)
        return read_json(response, error_message)


def read_json(response: httpx.Response, error_message: str) -> Any:
    try:
        return response.json()
    except ValueError:
        logger.error("Unparseable JSON from %s", response.request.url)
        raise ApiError(error_message, status_code=response.status_code)


def error_message_from(response: httpx.Response, default: str) -> str:
    """Backend ``{message}`` text when present, else ``default``."""
    try:
        data = response.json()
    except ValueError:
        return default
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return default
