from busdesk.routers.auth import router as auth_router
from busdesk.routers.sell import router as sell_router
from busdesk.routers.customers import router as customers_router
from busdesk.routers.scanner import router as scanner_router
from busdesk.routers.admin import router as admin_router

__all__ = [
    "auth_router",
    "sell_router",
    "customers_router",
    "scanner_router",
    "admin_router"
]
