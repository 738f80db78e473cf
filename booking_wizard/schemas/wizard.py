from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
from datetime import date

from booking_wizard.core.enums import WizardStep


class Coords(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class Vehicle(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    name: str = ""
    price_per_day: float = Field(alias="pricePerDay")
    price_per_km: Optional[float] = Field(default=None, alias="pricePerKm")
    available: bool = True


class WizardForm(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    pickup_location: str = ""
    dropoff_location: str = ""
    pickup_coords: Optional[Coords] = None
    dropoff_coords: Optional[Coords] = None
    card_number: str = ""
    expiry: str = ""
    cvv: str = ""
    card_name: str = ""


class ValidationErrors(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    card_number: Optional[str] = None
    expiry: Optional[str] = None
    cvv: Optional[str] = None
    card_name: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.messages()

    def messages(self) -> Dict[str, str]:
        return {field: msg for field, msg in self.model_dump().items() if msg}

    def clear(self, field: str) -> None:
        if field in type(self).model_fields:
            setattr(self, field, None)


class FareState(BaseModel):
    total_days: int = 0
    price_per_day: float = 0.0
    price_per_km: float = 0.0
    base_price: float = 0.0
    distance_km: float = 0.0
    distance_price: float = 0.0
    total_price: float = 0.0


class FormUpdate(BaseModel):
    """Partial form edit. Coordinate keys that are present, even as null, are
    treated as a place-selection event; absent keys leave coordinates alone."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    pickup_coords: Optional[Coords] = None
    dropoff_coords: Optional[Coords] = None
    card_number: Optional[str] = None
    expiry: Optional[str] = None
    cvv: Optional[str] = None
    card_name: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        """Only the keys the client sent; a null text field means empty text."""
        data = self.model_dump(exclude_unset=True)
        return {
            name: "" if value is None and name in TEXT_FIELDS else value
            for name, value in data.items()
        }


TEXT_FIELDS = (
    "pickup_location",
    "dropoff_location",
    "card_number",
    "expiry",
    "cvv",
    "card_name",
)


class WizardStart(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vehicle_id: int = Field(alias="vehicleId")


class FormView(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    pickup_location: str = ""
    dropoff_location: str = ""
    pickup_coords: Optional[Coords] = None
    dropoff_coords: Optional[Coords] = None
    card_last4: Optional[str] = None
    expiry: str = ""
    card_name: str = ""


class OutcomeView(BaseModel):
    ok: bool
    message: str
    category: Optional[str] = None
    booking_id: Optional[int] = None
    booking_status: Optional[str] = None
    redirect_to: Optional[str] = None
    redirect_after: Optional[float] = None


class WizardView(BaseModel):
    id: str
    vehicle_id: int
    step: WizardStep
    form: FormView
    errors: Dict[str, str]
    fare: FareState
    is_calculating_distance: bool
    message: Optional[str] = None
    outcome: Optional[OutcomeView] = None
