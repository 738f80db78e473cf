import math
from datetime import date
from typing import Optional

from booking_wizard.core.config import settings
from booking_wizard.schemas.wizard import FareState, Vehicle, WizardForm

SECONDS_PER_DAY = 86400


def rental_days(start: Optional[date], end: Optional[date]) -> int:
    """Whole rental days between two dates, a partial day counting as a full one."""
    if start is None or end is None:
        return 0
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / SECONDS_PER_DAY)


def effective_price_per_km(vehicle: Vehicle) -> float:
    return vehicle.price_per_km or settings.DEFAULT_PRICE_PER_KM


def compute_fare(form: WizardForm, vehicle: Vehicle, distance_km: float) -> FareState:
    total_days = rental_days(form.start_date, form.end_date)
    base_price = total_days * vehicle.price_per_day if total_days > 0 else 0.0

    per_km = effective_price_per_km(vehicle)
    # Distance only counts while both points are still selected on the map.
    if form.pickup_coords is None or form.dropoff_coords is None or distance_km <= 0:
        distance_km = 0.0
    distance_price = distance_km * per_km

    return FareState(
        total_days=total_days,
        price_per_day=vehicle.price_per_day,
        price_per_km=per_km,
        base_price=base_price,
        distance_km=distance_km,
        distance_price=distance_price,
        total_price=max(base_price + distance_price, 0.0),
    )
