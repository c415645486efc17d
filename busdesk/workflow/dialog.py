import logging
from typing import Hashable

from busdesk.services.api import ApiClient, ApiError, SessionExpiredError
from busdesk.services.sale import SaleService
from busdesk.workflow.sale import (
    Command,
    Event,
    FetchPaymentMethods,
    FetchSeats,
    Notify,
    PaymentMethodsLoaded,
    SaleFailed,
    SaleState,
    SaleSucceeded,
    SeatsFailed,
    SeatsLoaded,
    SubmitSale,
    TicketsSold,
    reduce,
)

logger = logging.getLogger(__name__)

GENERIC_SALE_ERROR = "Could not sell the tickets"


class SaleDialog:
    """
    Runs the sale state machine against the API for one agent.

    Notices and "tickets sold" signals pile up in ``outbox`` until the
    page that shows the dialog drains them.
    """

    def __init__(self):
        self.state = SaleState()
        self.outbox: list[Command] = []

    async def dispatch(self, event: Event, api: ApiClient) -> SaleState:
        self.state, commands = reduce(self.state, event)
        for command in commands:
            await self._run(command, api)
        return self.state

    def drain(self) -> list[Command]:
        outbox, self.outbox = self.outbox, []
        return outbox

    async def _run(self, command: Command, api: ApiClient):
        if isinstance(command, FetchSeats):
            await self._fetch_seats(command, api)
        elif isinstance(command, FetchPaymentMethods):
            methods = await SaleService.get_payment_methods(api)
            await self.dispatch(PaymentMethodsLoaded(tuple(methods)), api)
        elif isinstance(command, SubmitSale):
            await self._submit(command, api)
        elif isinstance(command, (Notify, TicketsSold)):
            self.outbox.append(command)
        else:
            raise TypeError(f"Unhandled sale dialog command: {command!r}")

    async def _fetch_seats(self, command: FetchSeats, api: ApiClient):
        try:
            seats = await SaleService.get_available_seats(api, command.schedule_id, command.schedule_date)
        except SessionExpiredError:
            raise
        except ApiError as e:
            logger.warning(
                "Available seats for schedule %s on %s could not be loaded: %s",
                command.schedule_id, command.schedule_date, e.message
            )
            await self.dispatch(SeatsFailed(command.request_id), api)
            return
        await self.dispatch(SeatsLoaded(command.request_id, tuple(seats)), api)

    async def _submit(self, command: SubmitSale, api: ApiClient):
        try:
            await SaleService.sell_tickets(api, command.sale)
        except SessionExpiredError:
            raise
        except ApiError as e:
            await self.dispatch(SaleFailed(command.request_id, e.message or GENERIC_SALE_ERROR), api)
            return
        except Exception:
            logger.exception("Unexpected error while selling tickets")
            await self.dispatch(SaleFailed(command.request_id, GENERIC_SALE_ERROR), api)
            return
        logger.info("Sold %s ticket(s)", command.sale.ticket_count)
        await self.dispatch(SaleSucceeded(command.request_id, command.sale.ticket_count), api)


class DialogRegistry:
    """One sale dialog per signed-in agent, kept in process memory."""

    def __init__(self):
        self._dialogs: dict[Hashable, SaleDialog] = {}

    def get(self, key: Hashable) -> SaleDialog:
        dialog = self._dialogs.get(key)
        if dialog is None:
            dialog = self._dialogs[key] = SaleDialog()
        return dialog

    def discard(self, key: Hashable):
        self._dialogs.pop(key, None)


sale_dialogs = DialogRegistry()
