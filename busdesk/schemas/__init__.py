from busdesk.schemas.user import Principal, LoginForm, User, UserForm, Status, StatusForm
from busdesk.schemas.catalog import DestinationForm, ScheduleForm
from busdesk.schemas.ticket import (
    Destination, Schedule, Passenger, SaleRequest, Ticket, TicketCreate,
    TicketUpdate, RouteOption, ValidationResponse
)

__all__ = [
    "Principal", "LoginForm", "User", "UserForm", "Status", "StatusForm",
    "DestinationForm", "ScheduleForm",
    "Destination", "Schedule", "Passenger", "SaleRequest", "Ticket",
    "TicketCreate", "TicketUpdate", "RouteOption", "ValidationResponse"
]
