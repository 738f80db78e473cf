"""Per-step validation rules for the booking wizard"""
import re
from datetime import date
from typing import Callable, Dict, Optional, Tuple

from booking_wizard.core.enums import WizardStep
from booking_wizard.schemas.wizard import ValidationErrors, WizardForm

# ASCII only: str patterns would otherwise accept fullwidth and other Unicode digits.
CARD_NUMBER_RE = re.compile(r"^\d{16}$", re.ASCII)
EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/\d{2}$", re.ASCII)
CVV_RE = re.compile(r"^\d{3}$", re.ASCII)
WHITESPACE_RE = re.compile(r"\s")

MIN_LOCATION_LENGTH = 3
MIN_CARD_NAME_LENGTH = 3

STEP_FIELDS: Dict[WizardStep, Tuple[str, ...]] = {
    WizardStep.DATES: ("start_date", "end_date"),
    WizardStep.LOCATIONS: ("pickup_location", "dropoff_location"),
    WizardStep.PAYMENT: ("card_number", "expiry", "cvv", "card_name"),
}


def validate_dates(form: WizardForm, today: date) -> ValidationErrors:
    errors = ValidationErrors()

    if form.start_date is None:
        errors.start_date = "Pickup date is required"
    elif form.start_date < today:
        errors.start_date = "Pickup date cannot be in the past"

    if form.end_date is None:
        errors.end_date = "Return date is required"
    elif form.start_date is not None and form.end_date <= form.start_date:
        errors.end_date = "Return date must be after pickup date"

    return errors


def _location_error(value: str, label: str) -> Optional[str]:
    text = value.strip()
    if not text:
        return f"{label} is required"
    if len(text) < MIN_LOCATION_LENGTH:
        return f"{label} must be at least {MIN_LOCATION_LENGTH} characters"
    return None


def validate_locations(form: WizardForm, today: date) -> ValidationErrors:
    return ValidationErrors(
        pickup_location=_location_error(form.pickup_location, "Pickup location"),
        dropoff_location=_location_error(form.dropoff_location, "Drop-off location"),
    )


def _expiry_error(expiry: str, today: date) -> Optional[str]:
    if not expiry:
        return "Expiry date is required"
    if not EXPIRY_RE.fullmatch(expiry):
        return "Invalid format (MM/YY)"
    month, year = expiry.split("/")
    # The card is good through the last day of its expiry month.
    if (2000 + int(year), int(month)) < (today.year, today.month):
        return "Card has expired"
    return None


def validate_payment(form: WizardForm, today: date) -> ValidationErrors:
    errors = ValidationErrors()

    if not form.card_number:
        errors.card_number = "Card number is required"
    elif not CARD_NUMBER_RE.fullmatch(WHITESPACE_RE.sub("", form.card_number)):
        errors.card_number = "Card number must be 16 digits"

    errors.expiry = _expiry_error(form.expiry, today)

    if not form.cvv:
        errors.cvv = "CVV is required"
    elif not CVV_RE.fullmatch(form.cvv):
        errors.cvv = "CVV must be 3 digits"

    name = form.card_name.strip()
    if not name:
        errors.card_name = "Name on card is required"
    elif len(name) < MIN_CARD_NAME_LENGTH:
        errors.card_name = f"Name must be at least {MIN_CARD_NAME_LENGTH} characters"

    return errors


VALIDATORS: Dict[WizardStep, Callable[[WizardForm, date], ValidationErrors]] = {
    WizardStep.DATES: validate_dates,
    WizardStep.LOCATIONS: validate_locations,
    WizardStep.PAYMENT: validate_payment,
}


def validate(step: WizardStep, form: WizardForm, today: Optional[date] = None) -> ValidationErrors:
    """Validate the fields owned by ``step``; an empty result means the step passes."""
    if step not in VALIDATORS:
        raise ValueError(f"Step {step} has no validation rules")
    return VALIDATORS[step](form, today or date.today())
