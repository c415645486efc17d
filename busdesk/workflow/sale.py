"""
The sell-tickets dialog as a pure state machine.

``reduce(state, event)`` returns the next state together with the commands
the caller has to carry out: seat and payment-method fetches, the sale
itself, notices for the agent and the "tickets sold" signal. Nothing in
this module performs I/O, so every transition can be tested directly.

Seat fetches are numbered. Only the result of the most recently issued
fetch is applied; results of older fetches, or of fetches issued before
the dialog was reset, are dropped on arrival. Sales are numbered the same
way, so a sale that finishes after the dialog was reopened is announced
without clearing the new one.
"""
from dataclasses import asdict, dataclass, field, replace
from datetime import date
from typing import Optional, Union

from busdesk.schemas.ticket import (
    DEFAULT_LANGUAGE,
    DEFAULT_PAYMENT_METHOD,
    DEFAULT_PAYMENT_METHODS,
    MAX_SEATS_PER_SALE,
    Passenger,
    SaleRequest,
)
from busdesk.workflow.validation import validate_passengers

PASSENGER_FIELDS = ("passenger_name", "passenger_surname", "passenger_email", "passenger_phone")
LANGUAGES = ("ka", "en")

SEATS_UNAVAILABLE_MESSAGE = "Could not load available seats"


@dataclass(frozen=True)
class PassengerForm:
    passenger_name: str = ""
    passenger_surname: str = ""
    passenger_email: str = ""
    passenger_phone: str = ""


BLANK_PASSENGER = PassengerForm()


def today_iso() -> str:
    return date.today().isoformat()


@dataclass(frozen=True)
class SaleState:
    is_open: bool = False
    schedule_id: Optional[int] = None
    schedule_date: str = field(default_factory=today_iso)
    selected_seats: tuple[int, ...] = ()
    # One form per selected seat; a single placeholder while no seat is chosen
    passengers: tuple[PassengerForm, ...] = (BLANK_PASSENGER,)
    payment_method: str = DEFAULT_PAYMENT_METHOD
    language: str = DEFAULT_LANGUAGE
    payment_methods: tuple[str, ...] = tuple(DEFAULT_PAYMENT_METHODS)
    available_seats: tuple[int, ...] = ()
    seats_loading: bool = False
    seat_error: Optional[str] = None
    last_seat_request: int = 0
    pending_seat_request: Optional[int] = None
    last_sale_request: int = 0
    pending_sale_request: Optional[int] = None
    form_errors: dict = field(default_factory=dict)

    @property
    def submitting(self) -> bool:
        return self.pending_sale_request is not None

    @property
    def seat_picker_enabled(self) -> bool:
        return bool(self.available_seats) and not self.seats_loading

    @property
    def sorted_seats(self) -> list[int]:
        return sorted(self.selected_seats)

    @property
    def active_passengers(self) -> tuple[PassengerForm, ...]:
        return self.passengers[:len(self.selected_seats)]


# Events

@dataclass(frozen=True)
class DialogOpened:
    pass


@dataclass(frozen=True)
class DialogClosed:
    pass


@dataclass(frozen=True)
class ScheduleChanged:
    schedule_id: Optional[int]


@dataclass(frozen=True)
class DateChanged:
    schedule_date: str


@dataclass(frozen=True)
class SeatsLoaded:
    request_id: int
    seats: tuple[int, ...]


@dataclass(frozen=True)
class SeatsFailed:
    request_id: int
    message: str = SEATS_UNAVAILABLE_MESSAGE


@dataclass(frozen=True)
class SeatToggled:
    seat: int


@dataclass(frozen=True)
class PassengerFieldChanged:
    index: int
    field: str
    value: str


@dataclass(frozen=True)
class FirstPassengerCopied:
    index: int


@dataclass(frozen=True)
class PaymentMethodChanged:
    payment_method: str


@dataclass(frozen=True)
class LanguageChanged:
    language: str


@dataclass(frozen=True)
class PaymentMethodsLoaded:
    methods: tuple[str, ...]


@dataclass(frozen=True)
class SubmitRequested:
    pass


@dataclass(frozen=True)
class SaleSucceeded:
    request_id: int
    ticket_count: int


@dataclass(frozen=True)
class SaleFailed:
    request_id: int
    message: str


Event = Union[
    DialogOpened, DialogClosed, ScheduleChanged, DateChanged, SeatsLoaded,
    SeatsFailed, SeatToggled, PassengerFieldChanged, FirstPassengerCopied,
    PaymentMethodChanged, LanguageChanged, PaymentMethodsLoaded,
    SubmitRequested, SaleSucceeded, SaleFailed,
]


# Commands

@dataclass(frozen=True)
class FetchSeats:
    request_id: int
    schedule_id: int
    schedule_date: str


@dataclass(frozen=True)
class FetchPaymentMethods:
    pass


@dataclass(frozen=True)
class SubmitSale:
    request_id: int
    sale: SaleRequest


@dataclass(frozen=True)
class Notify:
    level: str
    title: str
    message: str


@dataclass(frozen=True)
class TicketsSold:
    ticket_count: int


Command = Union[FetchSeats, FetchPaymentMethods, SubmitSale, Notify, TicketsSold]


def error(message: str) -> Notify:
    return Notify("error", "Error", message)


def reset(state: SaleState, is_open: bool) -> SaleState:
    """Back to an empty dialog, keeping only the request counters and payment methods."""
    return SaleState(
        is_open=is_open,
        last_seat_request=state.last_seat_request,
        last_sale_request=state.last_sale_request,
        payment_methods=state.payment_methods,
    )


def resize_passengers(passengers: tuple[PassengerForm, ...], count: int) -> tuple[PassengerForm, ...]:
    """Grow with blank forms or truncate from the end, keeping entered data."""
    if count == 0:
        return (BLANK_PASSENGER,)
    if count > len(passengers):
        return passengers + (BLANK_PASSENGER,) * (count - len(passengers))
    return passengers[:count]


def _keep_errors(form_errors: dict, kept_indices: list[int]) -> dict:
    """Re-key per-passenger errors after some passengers were removed."""
    return {
        new_index: form_errors[old_index]
        for new_index, old_index in enumerate(kept_indices)
        if old_index in form_errors
    }


def _drop_error(form_errors: dict, index: int, field_name: str) -> dict:
    """Forget the error of one field once the agent edits it."""
    if field_name not in form_errors.get(index, {}):
        return form_errors
    errors = dict(form_errors)
    remaining = {key: message for key, message in errors[index].items() if key != field_name}
    if remaining:
        errors[index] = remaining
    else:
        del errors[index]
    return errors


def _request_seats(state: SaleState) -> tuple[SaleState, list[Command]]:
    if state.schedule_id is None or not state.schedule_date:
        return replace(
            state,
            available_seats=(),
            seats_loading=False,
            seat_error=None,
            pending_seat_request=None,
        ), []

    request_id = state.last_seat_request + 1
    state = replace(
        state,
        seats_loading=True,
        seat_error=None,
        last_seat_request=request_id,
        pending_seat_request=request_id,
    )
    return state, [FetchSeats(request_id, state.schedule_id, state.schedule_date)]


def _seats_loaded(state: SaleState, event: SeatsLoaded) -> SaleState:
    available = tuple(event.seats)
    state = replace(
        state,
        available_seats=available,
        seats_loading=False,
        seat_error=None,
        pending_seat_request=None,
    )
    if not state.selected_seats:
        return state

    kept = [i for i, seat in enumerate(state.selected_seats) if seat in available]
    if len(kept) == len(state.selected_seats):
        return state

    seats = tuple(state.selected_seats[i] for i in kept)
    passengers = tuple(state.passengers[i] for i in kept) or (BLANK_PASSENGER,)
    return replace(
        state,
        selected_seats=seats,
        passengers=passengers,
        form_errors=_keep_errors(state.form_errors, kept),
    )


def _seat_toggled(state: SaleState, seat: int) -> tuple[SaleState, list[Command]]:
    if not state.seat_picker_enabled:
        return state, []

    if seat in state.selected_seats:
        index = state.selected_seats.index(seat)
        seats = state.selected_seats[:index] + state.selected_seats[index + 1:]
        passengers = state.passengers[:index] + state.passengers[index + 1:]
        kept = [i for i in range(len(state.selected_seats)) if i != index]
        return replace(
            state,
            selected_seats=seats,
            passengers=passengers if seats else (BLANK_PASSENGER,),
            form_errors=_keep_errors(state.form_errors, kept),
        ), []

    if seat not in state.available_seats:
        return state, [Notify("warning", "Unavailable", f"Seat {seat} is not available")]

    if len(state.selected_seats) >= MAX_SEATS_PER_SALE:
        return state, [Notify(
            "warning", "Limit", f"You can select at most {MAX_SEATS_PER_SALE} seats"
        )]

    seats = state.selected_seats + (seat,)
    return replace(
        state,
        selected_seats=seats,
        passengers=resize_passengers(state.passengers, len(seats)),
    ), []


def build_sale_request(state: SaleState) -> SaleRequest:
    """The sale for the current selection, seats ascending with their passengers."""
    pairs = sorted(zip(state.selected_seats, state.active_passengers), key=lambda pair: pair[0])
    return SaleRequest(
        ticket_count=len(pairs),
        schedule_id=state.schedule_id,
        schedule_date=state.schedule_date,
        seat_numbers=[seat for seat, _ in pairs],
        passengers=[Passenger(**asdict(form)) for _, form in pairs],
        payment_method=state.payment_method,
        language=state.language,
    )


def _submit(state: SaleState) -> tuple[SaleState, list[Command]]:
    if state.submitting:
        return state, []
    if state.schedule_id is None:
        return state, [error("Please choose a route")]
    if not state.schedule_date:
        return state, [error("Please choose a date")]
    if not state.selected_seats:
        return state, [error("Please select at least one seat")]

    form_errors = validate_passengers(state.active_passengers)
    if form_errors:
        return replace(state, form_errors=form_errors), [
            error("Please fill in the passenger details correctly")
        ]

    request_id = state.last_sale_request + 1
    state = replace(
        state,
        last_sale_request=request_id,
        pending_sale_request=request_id,
        form_errors={},
    )
    return state, [SubmitSale(request_id, build_sale_request(state))]


def reduce(state: SaleState, event: Event) -> tuple[SaleState, list[Command]]:
    if isinstance(event, DialogOpened):
        return reset(state, is_open=True), [FetchPaymentMethods()]

    if isinstance(event, DialogClosed):
        return reset(state, is_open=False), []

    # A sale already sent is reported even if the dialog was closed meanwhile
    if isinstance(event, SaleSucceeded):
        announcement = [
            Notify("success", "Success", f"Sold {event.ticket_count} ticket(s)"),
            TicketsSold(event.ticket_count),
        ]
        if event.request_id != state.pending_sale_request:
            return state, announcement
        return reset(state, is_open=False), announcement

    if isinstance(event, SaleFailed):
        if event.request_id != state.pending_sale_request:
            return state, [error(event.message)]
        return replace(state, pending_sale_request=None), [error(event.message)]

    # A closed dialog ignores input and late results
    if not state.is_open:
        return state, []

    if isinstance(event, ScheduleChanged):
        return _request_seats(replace(state, schedule_id=event.schedule_id))

    if isinstance(event, DateChanged):
        return _request_seats(replace(state, schedule_date=event.schedule_date))

    if isinstance(event, SeatsLoaded):
        if event.request_id != state.pending_seat_request:
            return state, []
        return _seats_loaded(state, event), []

    if isinstance(event, SeatsFailed):
        if event.request_id != state.pending_seat_request:
            return state, []
        # The selection survives a failed fetch; only the free seats are cleared
        return replace(
            state,
            available_seats=(),
            seats_loading=False,
            seat_error=event.message,
            pending_seat_request=None,
        ), [Notify("warning", "Seats", event.message)]

    if isinstance(event, SeatToggled):
        return _seat_toggled(state, event.seat)

    if isinstance(event, PassengerFieldChanged):
        if event.field not in PASSENGER_FIELDS:
            raise ValueError(f"Unknown passenger field: {event.field}")
        if not 0 <= event.index < len(state.passengers):
            return state, []
        passengers = list(state.passengers)
        passengers[event.index] = replace(passengers[event.index], **{event.field: event.value})
        return replace(
            state,
            passengers=tuple(passengers),
            form_errors=_drop_error(state.form_errors, event.index, event.field),
        ), []

    if isinstance(event, FirstPassengerCopied):
        if not 0 < event.index < len(state.passengers):
            return state, []
        passengers = list(state.passengers)
        passengers[event.index] = passengers[0]
        return replace(state, passengers=tuple(passengers)), []

    if isinstance(event, PaymentMethodChanged):
        if event.payment_method not in state.payment_methods:
            return state, []
        return replace(state, payment_method=event.payment_method), []

    if isinstance(event, LanguageChanged):
        if event.language not in LANGUAGES:
            return state, []
        return replace(state, language=event.language), []

    if isinstance(event, PaymentMethodsLoaded):
        methods = tuple(event.methods) or tuple(DEFAULT_PAYMENT_METHODS)
        payment_method = state.payment_method if state.payment_method in methods else methods[0]
        return replace(state, payment_methods=methods, payment_method=payment_method), []

    if isinstance(event, SubmitRequested):
        return _submit(state)

    raise TypeError(f"Unhandled sale dialog event: {event!r}")
