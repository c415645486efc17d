"""
Roles, their landing pages, route-access prefixes and sidebar menus.

Every table here is keyed by every member of ``Role``; tests assert that
no role is missing, so adding a role means filling in each table.
"""
import enum
from typing import Optional


class Role(str, enum.Enum):
    ADMIN = "admin"
    SALESAGENT = "salesagent"
    DRIVER = "driver"
    CUSTOMER = "customer"


SIGN_IN_PATH = "/"
DASHBOARD_PATH = "/dashboard"
USERS_PATH = "/dashboard/users"
DIRECTIONS_PATH = "/dashboard/directions"
STATUSES_PATH = "/dashboard/statuses"
SCHEDULE_PATH = "/dashboard/schedule"
TICKETS_PATH = "/dashboard/tickets"
CUSTOMERS_PATH = "/dashboard/customers"
SELL_TICKET_PATH = "/dashboard/sell-ticket"
QR_SCANNER_PATH = "/dashboard/qr-scanner"

# Every path under this prefix goes through the access gate
PROTECTED_PREFIX = "/dashboard"

ROLE_ACCESS_PATTERNS: dict[Role, tuple[str, ...]] = {
    Role.ADMIN: (
        "/dashboard",
        "/users",
        "/settings",
        "/reports",
        "/tickets",
        "/directions",
        "/schedule",
    ),
    Role.SALESAGENT: (CUSTOMERS_PATH, SELL_TICKET_PATH),
    Role.DRIVER: (QR_SCANNER_PATH,),
    Role.CUSTOMER: (),
}

LANDING_PAGES: dict[Role, str] = {
    Role.ADMIN: DASHBOARD_PATH,
    Role.SALESAGENT: CUSTOMERS_PATH,
    Role.DRIVER: QR_SCANNER_PATH,
    Role.CUSTOMER: SIGN_IN_PATH,
}

MENU_ITEMS: dict[Role, tuple[tuple[str, str], ...]] = {
    Role.ADMIN: (
        ("Dashboard", DASHBOARD_PATH),
        ("Users", USERS_PATH),
        ("Directions", DIRECTIONS_PATH),
        ("Statuses", STATUSES_PATH),
        ("Schedule", SCHEDULE_PATH),
        ("Tickets", TICKETS_PATH),
    ),
    Role.SALESAGENT: (
        ("Customers", CUSTOMERS_PATH),
        ("Tickets", SELL_TICKET_PATH),
        ("Sales report", f"{SELL_TICKET_PATH}/report"),
    ),
    Role.DRIVER: (
        ("QR scanner", QR_SCANNER_PATH),
    ),
    Role.CUSTOMER: (),
}


def parse_role(value: Optional[str]) -> Optional[Role]:
    """Return the matching Role, or None for a missing or unknown value."""
    if not value:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def landing_page(role: Optional[Role]) -> str:
    if role is None:
        return SIGN_IN_PATH
    return LANDING_PAGES[role]


def menu_for(role: Optional[Role], current_path: str = "") -> list[dict]:
    if role is None:
        return []
    return [
        {"title": title, "url": url, "is_active": current_path == url}
        for title, url in MENU_ITEMS[role]
    ]
