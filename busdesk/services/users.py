from typing import Optional
import logging

from pydantic import ValidationError

from busdesk.schemas.ticket import Ticket
from busdesk.schemas.user import User, UserForm
from busdesk.services.api import ApiClient, ApiError

logger = logging.getLogger(__name__)

# id -> (name, Georgian name, colour)
CUSTOMER_STATUSES = {
    1: ("Active", "აქტიური", "#19B393"),
    2: ("Inactive", "არააქტიური", "#FE0000"),
    3: ("Validated", "გატარებული", "#FFB800"),
    4: ("Cancelled", "გაუქმებული", "#BFBFBF"),
}


def status_label(status_id: Optional[int]) -> str:
    status = CUSTOMER_STATUSES.get(status_id)
    return status[0] if status else "Unknown"


def status_color(status_id: Optional[int]) -> str:
    status = CUSTOMER_STATUSES.get(status_id)
    return status[2] if status else "#000000"


def _users(data, error_message: str) -> list[User]:
    if not isinstance(data, list):
        raise ApiError(error_message)
    try:
        return [User.model_validate(item) for item in data]
    except ValidationError:
        raise ApiError(error_message)


class CustomerService:
    """Customer lookups available to sales agents."""

    @staticmethod
    async def get_customers(api: ApiClient) -> list[User]:
        data = await api.fetch_json("GET", "/customers", "Failed to load customers")
        return _users(data, "Failed to load customers")

    @staticmethod
    async def get_customer(api: ApiClient, customer_id: int) -> User:
        data = await api.fetch_json("GET", f"/customers/{customer_id}", "Failed to load customer")
        try:
            return User.model_validate(data)
        except ValidationError:
            raise ApiError("Failed to load customer")

    @staticmethod
    async def get_customer_tickets(api: ApiClient, customer_id: int) -> list[Ticket]:
        data = await api.fetch_json(
            "GET", f"/customers/{customer_id}/tickets", "Failed to load customer tickets"
        )
        if not isinstance(data, list):
            raise ApiError("Failed to load customer tickets")
        try:
            return [Ticket.model_validate(item) for item in data]
        except ValidationError:
            raise ApiError("Failed to load customer tickets")

    @staticmethod
    async def update_customer_status(api: ApiClient, customer_id: int, status_id: int) -> None:
        if status_id not in CUSTOMER_STATUSES:
            raise ApiError("Unknown status")
        response = await api.put(f"/customers/{customer_id}/status", json={"status_id": status_id})
        if not response.is_success:
            raise ApiError("Failed to update customer status", status_code=response.status_code)


class UserService:
    """User administration for admins."""

    @staticmethod
    async def get_users(api: ApiClient, role: Optional[str] = None) -> list[User]:
        params = {"role": role} if role else None
        data = await api.fetch_json("GET", "/users", "Failed to load users", params=params)
        return _users(data, "Failed to load users")

    @staticmethod
    async def get_user(api: ApiClient, user_id: int) -> User:
        data = await api.fetch_json("GET", f"/users/{user_id}", "Failed to load user")
        try:
            return User.model_validate(data)
        except ValidationError:
            raise ApiError("Failed to load user")

    @staticmethod
    async def create_user(api: ApiClient, form: UserForm) -> dict:
        if not form.password:
            raise ApiError("A password is required for new users")
        return await api.fetch_json(
            "POST", "/users", "Failed to create user", json=form.model_dump(mode="json")
        )

    @staticmethod
    async def update_user(api: ApiClient, user_id: int, form: UserForm) -> dict:
        # A blank password leaves the current one in place
        payload = form.model_dump(mode="json", exclude_none=True)
        return await api.fetch_json("PUT", f"/users/{user_id}", "Failed to update user", json=payload)

    @staticmethod
    async def delete_user(api: ApiClient, user_id: int) -> None:
        response = await api.delete(f"/users/{user_id}")
        if not response.is_success:
            raise ApiError("Failed to delete user", status_code=response.status_code)
