from busdesk.services.api import ApiClient, ApiError, AuthenticationRequiredError, SessionExpiredError
from busdesk.services.auth import AuthService
from busdesk.services.sale import SaleService
from busdesk.services.tickets import TicketService
from busdesk.services.driver import DriverService
from busdesk.services.users import CustomerService, UserService
from busdesk.services.excel import ExcelService

__all__ = [
    "ApiClient", "ApiError", "AuthenticationRequiredError", "SessionExpiredError",
    "AuthService", "SaleService", "TicketService", "DriverService",
    "CustomerService", "UserService", "ExcelService"
]
