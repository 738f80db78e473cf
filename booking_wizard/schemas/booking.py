from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional
from datetime import date

from booking_wizard.core.enums import BookingStatus, PaymentMethod


class BookingPayload(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    user_id: int
    vehicle_id: int
    start_date: date
    end_date: date
    total_days: int
    pickup_location: str
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    dropoff_location: str
    dropoff_latitude: Optional[float] = None
    dropoff_longitude: Optional[float] = None
    distance_km: float
    base_price_per_day: float
    base_price: float
    distance_price: float
    total_price: float
    special_requests: str = ""
    payment_method: PaymentMethod

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Booking(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    status: Optional[str] = None

    @property
    def effective_status(self) -> str:
        return self.status or BookingStatus.PENDING.value
