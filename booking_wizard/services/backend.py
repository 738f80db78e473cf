import logging
from typing import Any, Dict, List, Optional

import httpx

from booking_wizard.core.config import settings
from booking_wizard.core.errors import BackendError
from booking_wizard.schemas.booking import BookingPayload
from booking_wizard.schemas.notification import NotificationCreate
from booking_wizard.schemas.wizard import Coords, Vehicle

logger = logging.getLogger(__name__)


def _bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class BackendClient:
    """Thin async wrapper over the rental backend REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.BACKEND_URL,
            timeout=timeout if timeout is not None else settings.BACKEND_TIMEOUT,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _raise_for_status(self, response: httpx.Response) -> None:
        if not response.is_success:
            raise BackendError(response.status_code, _body(response), response.reason_phrase)

    async def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        try:
            response = await self._client.get(f"/api/vehicles/{vehicle_id}")
        except httpx.HTTPError as e:
            logger.error(f"Vehicle lookup failed for vehicle {vehicle_id}: {e}")
            return None

        if not response.is_success:
            logger.info(f"Vehicle {vehicle_id} not found (status {response.status_code})")
            return None
        return Vehicle.model_validate(response.json())

    async def calculate_distance(self, pickup: Coords, dropoff: Coords) -> float:
        response = await self._client.post(
            "/api/distance/calculate",
            json={
                "lat1": pickup.lat,
                "lon1": pickup.lng,
                "lat2": dropoff.lat,
                "lon2": dropoff.lng,
            },
        )
        self._raise_for_status(response)
        data = response.json()
        return float(data.get("distanceKm") or 0.0)

    async def create_booking(self, payload: BookingPayload, token: str) -> httpx.Response:
        # Status classification belongs to the submitter, so the raw response
        # is returned for every status code.
        return await self._client.post(
            "/api/bookings",
            json=payload.to_wire(),
            headers=_bearer(token),
        )

    async def list_admins(self, token: str) -> List[int]:
        response = await self._client.get("/api/users/admins", headers=_bearer(token))
        self._raise_for_status(response)
        return [int(admin["id"]) for admin in response.json()]

    async def create_notification(self, notification: NotificationCreate, token: str) -> Any:
        response = await self._client.post(
            "/api/notifications",
            json=notification.to_wire(),
            headers=_bearer(token),
        )
        self._raise_for_status(response)
        return _body(response)

    async def get_current_user(self, token: str) -> Dict[str, Any]:
        response = await self._client.get("/api/auth/me", headers=_bearer(token))
        self._raise_for_status(response)
        return response.json()


backend: Optional[BackendClient] = None

async def init_backend() -> BackendClient:
    global backend
    backend = BackendClient()
    logger.info(f"Backend client ready for {settings.BACKEND_URL}")
    return backend

async def close_backend():
    global backend
    if backend:
        await backend.aclose()
        backend = None

def get_backend() -> BackendClient:
    global backend
    if backend is None:
        backend = BackendClient()
    return backend
