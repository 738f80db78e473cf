import pytest
import json
import httpx
from httpx import AsyncClient, ASGITransport
from datetime import date, datetime, timedelta, timezone
from jose import jwt

from booking_wizard.main import app
from booking_wizard.core.security import ActingUser, AuthContext
from booking_wizard.schemas.wizard import Coords, Vehicle
from booking_wizard.services.backend import BackendClient, get_backend
from booking_wizard.services.sessions import WizardRegistry, get_registry
from booking_wizard.services.wizard import BookingWizard


TEST_SECRET = "test-secret"
TEST_TODAY = date(2025, 5, 20)
TEST_USER_ID = 7

COLOMBO_FORT = Coords(lat=6.9271, lng=79.8612)
GALLE_FACE = Coords(lat=6.9344, lng=79.8428)


def make_token(sub: str, expires_in: timedelta) -> str:
    payload = {
        "sub": sub,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, TEST_SECRET, algorithm="HS256")


class BackendStub:
    """In-memory rental backend served through ``httpx.MockTransport``."""

    def __init__(self):
        self.vehicles = {
            1: {"id": 1, "name": "Toyota Prius", "pricePerDay": 100.0, "pricePerKm": 2.0, "available": True},
            2: {"id": 2, "name": "Suzuki Alto", "pricePerDay": 40.0, "pricePerKm": None, "available": False},
        }
        self.users = {}
        self.distance_km = 5.2
        self.distance_status = 200
        self.booking_status = 201
        self.booking_body = {"id": 42, "status": "PENDING", "totalPrice": 310.4}
        self.admins = [{"id": 100}, {"id": 101}, {"id": 102}]
        self.admins_status = 200
        self.failing_recipients = set()
        self.raise_on = {}
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.raise_on:
            raise self.raise_on[path]("backend unreachable", request=request)

        if request.method == "GET" and path.startswith("/api/vehicles/"):
            vehicle = self.vehicles.get(int(path.rsplit("/", 1)[1]))
            if vehicle is None:
                return httpx.Response(404, json={"message": "Vehicle not found"})
            return httpx.Response(200, json=vehicle)

        if request.method == "POST" and path == "/api/distance/calculate":
            if self.distance_status != 200:
                return httpx.Response(self.distance_status, json={"error": "routing failed"})
            return httpx.Response(200, json={"distanceKm": self.distance_km})

        if request.method == "POST" and path == "/api/bookings":
            if isinstance(self.booking_body, str):
                return httpx.Response(self.booking_status, text=self.booking_body)
            return httpx.Response(self.booking_status, json=self.booking_body)

        if request.method == "GET" and path == "/api/users/admins":
            if self.admins_status != 200:
                return httpx.Response(self.admins_status, json={"message": "Forbidden"})
            return httpx.Response(200, json=self.admins)

        if request.method == "POST" and path == "/api/notifications":
            body = json.loads(request.content)
            if body["userId"] in self.failing_recipients:
                return httpx.Response(500, text="Internal Server Error")
            return httpx.Response(201, json={"id": len(self.requests), **body})

        if request.method == "GET" and path == "/api/auth/me":
            token = request.headers.get("Authorization", "").removeprefix("Bearer ")
            user = self.users.get(token)
            if user is None:
                return httpx.Response(401, json={"message": "Unauthorized"})
            return httpx.Response(200, json=user)

        return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})

    def sent(self, method: str, path: str):
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def notifications(self):
        return [json.loads(r.content) for r in self.sent("POST", "/api/notifications")]


@pytest.fixture
def backend_stub():
    return BackendStub()


@pytest.fixture
async def backend(backend_stub):
    client = BackendClient(
        base_url="http://backend.test",
        transport=httpx.MockTransport(backend_stub.handler),
    )
    yield client
    await client.aclose()


@pytest.fixture
def vehicle():
    return Vehicle(id=1, name="Toyota Prius", price_per_day=100.0, price_per_km=2.0, available=True)


@pytest.fixture
def user_token():
    return make_token(str(TEST_USER_ID), timedelta(hours=1))


@pytest.fixture
def expired_token():
    return make_token(str(TEST_USER_ID), timedelta(hours=-1))


@pytest.fixture
def acting_user():
    return ActingUser(id=TEST_USER_ID, email="kasun@example.com", name="Kasun Perera", role="USER")


@pytest.fixture
def unauthorized_calls():
    return []


@pytest.fixture
def auth_context(user_token, acting_user, unauthorized_calls):
    return AuthContext(
        token=user_token,
        user=acting_user,
        on_unauthorized=lambda: unauthorized_calls.append(True),
    )


@pytest.fixture
def wizard(vehicle, backend, auth_context):
    wiz = BookingWizard(vehicle, backend, auth=auth_context, clock=lambda: TEST_TODAY)
    yield wiz
    wiz.close()


@pytest.fixture
def valid_dates():
    return {"start_date": date(2025, 6, 1), "end_date": date(2025, 6, 4)}


@pytest.fixture
def valid_locations():
    return {"pickup_location": "Colombo Fort", "dropoff_location": "Galle Face Green"}


@pytest.fixture
def valid_payment():
    return {
        "card_number": "4111 1111 1111 1111",
        "expiry": "01/99",
        "cvv": "123",
        "card_name": "Kasun Perera",
    }


@pytest.fixture
def wizard_at_payment(wizard, valid_dates, valid_locations):
    wizard.update_fields(**valid_dates)
    assert wizard.next_step()
    wizard.update_fields(**valid_locations)
    assert wizard.next_step()
    return wizard


@pytest.fixture
def registry():
    reg = WizardRegistry(ttl_seconds=3600)
    yield reg
    reg.clear()


@pytest.fixture
async def test_client(backend, registry):
    app.dependency_overrides[get_backend] = lambda: backend
    app.dependency_overrides[get_registry] = lambda: registry
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(backend_stub, user_token):
    backend_stub.users[user_token] = {
        "id": TEST_USER_ID,
        "email": "kasun@example.com",
        "name": "Kasun Perera",
        "role": "USER",
    }
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def app_settings():
    """Return application settings"""
    from booking_wizard.core.config import settings
    return settings


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "validation: marks tests related to step validation"
    )
    config.addinivalue_line(
        "markers", "pricing: marks tests related to fare computation"
    )
    config.addinivalue_line(
        "markers", "distance: marks tests related to route distance resolution"
    )
    config.addinivalue_line(
        "markers", "submission: marks tests related to booking submission"
    )
    config.addinivalue_line(
        "markers", "notifications: marks tests related to notification fan-out"
    )
    config.addinivalue_line(
        "markers", "auth: marks tests related to authentication"
    )


@pytest.fixture(scope="session", autouse=True)
def startup():
    print("\n" + "="*70)
    print("Starting Test Suite")
    print("="*70)
    yield
    print("\n" + "="*70)
    print("Test Suite Complete")
    print("="*70)
