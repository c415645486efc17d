from pydantic import BaseModel, Field, field_validator
from typing import Optional


def split_stops(text: Optional[str]) -> list[str]:
    """Comma-separated bus stops as a trimmed list."""
    if not text:
        return []
    return [stop.strip() for stop in text.split(",") if stop.strip()]


class DestinationForm(BaseModel):
    leaves_from: str
    arrives_to: str
    leaves_from_ka: str = ""
    arrives_to_ka: str = ""
    bus_stops: list[str] = []
    bus_stops_ka: list[str] = []
    price: float = Field(ge=0)

    @field_validator("bus_stops", "bus_stops_ka", mode="before")
    @classmethod
    def stops_from_text(cls, value):
        if isinstance(value, str):
            return split_stops(value)
        return value


class ScheduleForm(BaseModel):
    destination_id: int
    leave_time: str
    arrive_time: str
