"""Pytest configuration and shared fixtures."""

import httpx
import pytest
from fastapi.testclient import TestClient

from busdesk.config import get_settings
from busdesk.main import app
from busdesk.roles import Role
from busdesk.routers.auth import limiter
from busdesk.routers.scanner import scan_history
from busdesk.schemas.user import Principal
from busdesk.services.api import ApiClient
from busdesk.services.auth import SESSION_COOKIE_NAME, AuthService
from busdesk.workflow import sale_dialogs

API_PREFIX = httpx.URL(get_settings().api_url).path.rstrip("/")
CSRF_TOKEN = "test-csrf-token"

PRINCIPAL_IDS = {
    Role.ADMIN: 1,
    Role.SALESAGENT: 2,
    Role.DRIVER: 3,
    Role.CUSTOMER: 4,
}


class FakeApi:
    """In-memory stand-in for the ticketing API, keyed by method and path."""

    def __init__(self):
        self.routes = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, status_code: int = 200, json=None, handler=None):
        if handler is None:
            def handler(request):
                return httpx.Response(status_code, json=json)
        self.routes[(method, path)] = handler
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith(API_PREFIX):
            path = path[len(API_PREFIX):]
        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"message": f"No fake route for {request.method} {path}"})
        return handler(request)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            request for request in self.requests
            if request.method == method and request.url.path == API_PREFIX + path
        ]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def make_principal(role: Role = Role.SALESAGENT, **overrides) -> Principal:
    data = {
        "id": PRINCIPAL_IDS[role],
        "email": f"{role.value}@example.com",
        "first_name": "Nino",
        "last_name": "Beridze",
        "role": role,
        "token": f"{role.value}-token",
    }
    data.update(overrides)
    return Principal(**data)


def make_schedule(schedule_id: int = 7, leaves_from: str = "Tbilisi", arrives_to: str = "Batumi", price: float = 30.0):
    return {
        "id": schedule_id,
        "destination_id": schedule_id * 10,
        "leave_time": "09:00",
        "arrive_time": "15:00",
        "destination": {
            "id": schedule_id * 10,
            "leaves_from": leaves_from,
            "arrives_to": arrives_to,
            "price": price,
        },
    }


def make_ticket(ticket_id: int, schedule_date: str = "2026-10-19", schedule=None, **overrides):
    data = {
        "id": ticket_id,
        "seat_number": ticket_id,
        "schedule_id": 7,
        "schedule_date": schedule_date,
        "passenger_name": "Giorgi",
        "passenger_surname": "Kapanadze",
        "passenger_email": f"giorgi{ticket_id}@example.com",
        "passenger_phone": "+995555123456",
        "ticket_hash": f"hash-{ticket_id}",
        "schedule": schedule or make_schedule(),
    }
    data.update(overrides)
    return data


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_api() -> FakeApi:
    api = FakeApi()
    api.on("GET", "/user", json={"user": {"id": 1}})
    return api


@pytest.fixture
def api_client(fake_api) -> ApiClient:
    return ApiClient("agent-token", transport=fake_api.transport)


@pytest.fixture
def client(fake_api):
    app.state.api_transport = fake_api.transport
    limiter.reset()
    with TestClient(app) as test_client:
        test_client.cookies.set("csrf_token", CSRF_TOKEN)
        test_client.headers["X-CSRF-Token"] = CSRF_TOKEN
        yield test_client
    app.state.api_transport = None


@pytest.fixture(autouse=True)
def clear_dialogs():
    yield
    for principal_id in PRINCIPAL_IDS.values():
        sale_dialogs.discard(principal_id)
    scan_history.clear()


def sign_in(client: TestClient, role: Role = Role.SALESAGENT, **overrides) -> Principal:
    principal = make_principal(role, **overrides)
    client.cookies.set(SESSION_COOKIE_NAME, AuthService.create_session_token(principal))
    return principal
