from pydantic import BaseModel, ValidationError

from busdesk.schemas.catalog import DestinationForm, ScheduleForm
from busdesk.schemas.ticket import Destination, Schedule
from busdesk.schemas.user import Status, StatusForm
from busdesk.services.api import ApiClient, ApiError


class CatalogResource:
    """CRUD over one admin-managed collection of the API."""

    def __init__(self, path: str, model: type[BaseModel], noun: str):
        self.path = path
        self.model = model
        self.noun = noun

    async def list_all(self, api: ApiClient) -> list:
        data = await api.fetch_json("GET", self.path, f"Failed to load {self.noun}s")
        if not isinstance(data, list):
            raise ApiError(f"Failed to load {self.noun}s")
        try:
            return [self.model.model_validate(item) for item in data]
        except ValidationError:
            raise ApiError(f"Failed to load {self.noun}s")

    async def create(self, api: ApiClient, form: BaseModel) -> dict:
        return await api.fetch_json(
            "POST", self.path, f"Failed to create {self.noun}", json=form.model_dump()
        )

    async def update(self, api: ApiClient, item_id: int, form: BaseModel) -> dict:
        return await api.fetch_json(
            "PUT", f"{self.path}/{item_id}", f"Failed to update {self.noun}", json=form.model_dump()
        )

    async def delete(self, api: ApiClient, item_id: int) -> None:
        response = await api.delete(f"{self.path}/{item_id}")
        if not response.is_success:
            raise ApiError(f"Failed to delete {self.noun}", status_code=response.status_code)


destinations = CatalogResource("/destinations", Destination, "destination")
schedules = CatalogResource("/schedules", Schedule, "schedule")
statuses = CatalogResource("/statuses", Status, "status")

# Which form model feeds each resource
FORMS = {
    "destinations": (destinations, DestinationForm),
    "schedules": (schedules, ScheduleForm),
    "statuses": (statuses, StatusForm),
}
