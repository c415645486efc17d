import re
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator
from pydantic_core import PydanticCustomError

MAX_SEATS_PER_SALE = 5
DEFAULT_PAYMENT_METHOD = "cash"
DEFAULT_LANGUAGE = "ka"
DEFAULT_PAYMENT_METHODS = ["cash", "card", "bank_transfer"]

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
PHONE_PATTERN = re.compile(r"^[+]?[0-9]{8,15}$")


class Destination(BaseModel):
    id: int
    leaves_from: str
    arrives_to: str
    leaves_from_ka: Optional[str] = None
    arrives_to_ka: Optional[str] = None
    bus_stops: list[str] = []
    bus_stops_ka: list[str] = []
    price: Optional[float] = None

    @property
    def route(self) -> str:
        return f"{self.leaves_from}-{self.arrives_to}"

    class Config:
        extra = "ignore"


class Schedule(BaseModel):
    id: int
    destination_id: Optional[int] = None
    leave_time: str
    arrive_time: Optional[str] = None
    destination: Optional[Destination] = None

    @property
    def label(self) -> str:
        if self.destination is None:
            return self.leave_time
        return f"{self.destination.leaves_from} ➝ {self.destination.arrives_to} ({self.leave_time})"

    class Config:
        extra = "ignore"


class Passenger(BaseModel):
    """Passenger details for one seat; validation errors are per field."""

    passenger_name: str = ""
    passenger_surname: str = ""
    passenger_email: str = ""
    passenger_phone: str = ""

    @field_validator("passenger_name")
    @classmethod
    def name_required(cls, value: str) -> str:
        if not value.strip():
            raise PydanticCustomError("required", "Name is required")
        return value

    @field_validator("passenger_surname")
    @classmethod
    def surname_required(cls, value: str) -> str:
        if not value.strip():
            raise PydanticCustomError("required", "Surname is required")
        return value

    @field_validator("passenger_email")
    @classmethod
    def email_shape(cls, value: str) -> str:
        if not value.strip():
            raise PydanticCustomError("required", "Email is required")
        if not EMAIL_PATTERN.match(value):
            raise PydanticCustomError("email", "Invalid email format")
        return value

    @field_validator("passenger_phone")
    @classmethod
    def phone_shape(cls, value: str) -> str:
        if value and not PHONE_PATTERN.match(value):
            raise PydanticCustomError("phone", "Invalid phone number format")
        return value


class SaleRequest(BaseModel):
    """One atomic sale of 1 to MAX_SEATS_PER_SALE tickets."""

    ticket_count: int
    schedule_id: int
    schedule_date: str
    seat_numbers: list[int]
    passengers: list[Passenger]
    payment_method: str = DEFAULT_PAYMENT_METHOD
    language: str = DEFAULT_LANGUAGE

    @model_validator(mode="after")
    def counts_agree(self):
        if not (self.ticket_count == len(self.seat_numbers) == len(self.passengers)):
            raise ValueError("ticket_count, seat_numbers and passengers must have the same length")
        if not 1 <= self.ticket_count <= MAX_SEATS_PER_SALE:
            raise ValueError(f"A sale holds between 1 and {MAX_SEATS_PER_SALE} tickets")
        return self


class Ticket(BaseModel):
    id: int
    seat_number: int
    schedule_id: int
    schedule_date: str
    passenger_name: Optional[str] = None
    passenger_surname: Optional[str] = None
    passenger_email: Optional[str] = None
    passenger_phone: Optional[str] = None
    purchaser_id: Optional[int] = None
    driver_id: Optional[int] = None
    ticket_hash: Optional[str] = None
    validated_at: Optional[str] = None
    payment_method: Optional[str] = None
    language: Optional[str] = None
    status_id: Optional[int] = None
    schedule: Optional[Schedule] = None

    @property
    def passenger_full_name(self) -> str:
        return f"{self.passenger_name or ''} {self.passenger_surname or ''}".strip()

    @property
    def price(self) -> Optional[float]:
        if self.schedule and self.schedule.destination:
            return self.schedule.destination.price
        return None

    class Config:
        extra = "ignore"


class TicketCreate(BaseModel):
    schedule_id: int
    seat_number: int
    schedule_date: str
    passenger_name: str
    passenger_surname: str
    passenger_email: str
    passenger_phone: str = ""
    purchaser_id: Optional[int] = None
    driver_id: Optional[int] = None
    payment_method: str = DEFAULT_PAYMENT_METHOD
    language: str = DEFAULT_LANGUAGE

    @field_validator("driver_id", mode="before")
    @classmethod
    def blank_driver_is_none(cls, value):
        return value or None


class TicketUpdate(BaseModel):
    schedule_id: Optional[int] = None
    seat_number: Optional[int] = None
    schedule_date: Optional[str] = None
    passenger_name: Optional[str] = None
    passenger_surname: Optional[str] = None
    passenger_email: Optional[str] = None
    passenger_phone: Optional[str] = None
    driver_id: Optional[int] = None
    language: Optional[str] = None

    @field_validator("driver_id", mode="before")
    @classmethod
    def blank_driver_is_none(cls, value):
        return value or None


class RouteOption(BaseModel):
    leaves_from: str
    arrives_to: str
    value: str


class ValidationResponse(BaseModel):
    success: bool = True
    message: str = ""
    ticket: Optional[Ticket] = None

    class Config:
        extra = "ignore"
