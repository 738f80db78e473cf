"""Booking wizard state machine.

DATES -> LOCATIONS -> PAYMENT -> SUBMITTING -> SUCCESS, one validated step at
a time going forward, any earlier step going back. A failed submission lands
on PAYMENT again with everything the user typed still in place.
"""
import asyncio
import logging
from datetime import date
from typing import Any, Callable, Optional

from booking_wizard.core.config import settings
from booking_wizard.core.enums import FORM_STEPS, WizardStep
from booking_wizard.core.errors import InvalidTransition, VehicleNotFound, VehicleUnavailable
from booking_wizard.core.metrics import wizard_transitions, wizard_validation_failures
from booking_wizard.core.security import AuthContext
from booking_wizard.schemas.wizard import Coords, FareState, ValidationErrors, Vehicle, WizardForm
from booking_wizard.services.backend import BackendClient
from booking_wizard.services.distance import DistanceResolver
from booking_wizard.services.pricing import compute_fare
from booking_wizard.services.submitter import (
    BookingSubmitter,
    SubmissionOutcome,
    FIX_FORM_MESSAGE,
    INVALID_DATES_MESSAGE,
)
from booking_wizard.services.validation import STEP_FIELDS, validate

logger = logging.getLogger(__name__)

UNAVAILABLE_NOTICE = "This vehicle is currently unavailable for booking"

_UNSET: Any = object()


class BookingWizard:

    def __init__(
        self,
        vehicle: Vehicle,
        backend: BackendClient,
        auth: Optional[AuthContext] = None,
        submitter: Optional[BookingSubmitter] = None,
        resolver: Optional[DistanceResolver] = None,
        clock: Callable[[], date] = date.today,
        navigate: Optional[Callable[[str], None]] = None,
    ):
        self.vehicle = vehicle
        self.backend = backend
        self.auth = auth or AuthContext()
        self.submitter = submitter or BookingSubmitter(backend)
        self.resolver = resolver or DistanceResolver(backend)
        self.step = WizardStep.DATES
        self.form = WizardForm()
        self.errors = ValidationErrors()
        self.message: Optional[str] = None
        self.last_outcome: Optional[SubmissionOutcome] = None
        self._clock = clock
        self._navigate = navigate
        self._redirect: Optional[asyncio.TimerHandle] = None

    @classmethod
    async def start(cls, vehicle_id: int, backend: BackendClient, **kwargs) -> "BookingWizard":
        """Load the vehicle and open a wizard on it, or raise a precondition error."""
        vehicle = await backend.get_vehicle(vehicle_id)
        if vehicle is None:
            raise VehicleNotFound("Vehicle not found", settings.VEHICLES_PATH)
        if not vehicle.available:
            logger.info(f"Refusing to book unavailable vehicle {vehicle.id}")
            raise VehicleUnavailable(UNAVAILABLE_NOTICE, f"{settings.VEHICLES_PATH}/{vehicle.id}")
        logger.info(f"Booking wizard opened for vehicle {vehicle.id}")
        return cls(vehicle, backend, **kwargs)

    @property
    def fare(self) -> FareState:
        return compute_fare(self.form, self.vehicle, self.resolver.distance_km)

    @property
    def is_submitting(self) -> bool:
        return self.step == WizardStep.SUBMITTING

    def _require_editable(self) -> None:
        if self.step not in FORM_STEPS:
            raise InvalidTransition(f"Wizard is {self.step}, no further edits or navigation allowed")

    def _move(self, target: WizardStep) -> None:
        logger.info(f"Wizard step {self.step} -> {target}")
        wizard_transitions.labels(from_step=self.step.value, to_step=target.value).inc()
        self.step = target

    def update_fields(self, **changes: Any) -> None:
        """Apply user edits. Each edited field loses its error right away;
        errors are only recomputed in bulk when a step is submitted."""
        self._require_editable()
        for name in changes:
            if name not in WizardForm.model_fields:
                raise ValueError(f"Unknown form field: {name}")

        # Validate the whole edit before applying any of it.
        self.form = WizardForm.model_validate({**self.form.model_dump(), **changes})
        for name in changes:
            self.errors.clear(name)

        if "pickup_coords" in changes or "dropoff_coords" in changes:
            self.resolver.update(self.form.pickup_coords, self.form.dropoff_coords)

    def select_pickup(self, text: str, coords: Optional[Coords] = _UNSET) -> None:
        """Typed text or a picked place. Coordinates only change when passed,
        ``None`` included."""
        changes = {"pickup_location": text}
        if coords is not _UNSET:
            changes["pickup_coords"] = coords
        self.update_fields(**changes)

    def select_dropoff(self, text: str, coords: Optional[Coords] = _UNSET) -> None:
        changes = {"dropoff_location": text}
        if coords is not _UNSET:
            changes["dropoff_coords"] = coords
        self.update_fields(**changes)

    def _validate_current(self) -> bool:
        step_errors = validate(self.step, self.form, self._clock())
        for name in STEP_FIELDS[self.step]:
            setattr(self.errors, name, getattr(step_errors, name))

        if not step_errors.is_empty():
            wizard_validation_failures.labels(step=self.step.value).inc()
            self.message = FIX_FORM_MESSAGE
            return False
        return True

    def next_step(self) -> bool:
        """Validate the current step and move one forward. Returns whether it moved."""
        self._require_editable()
        if self.step == WizardStep.PAYMENT:
            raise InvalidTransition("PAYMENT is left by submitting the booking")

        if not self._validate_current():
            return False
        if self.step == WizardStep.DATES and self.fare.total_days == 0:
            self.message = INVALID_DATES_MESSAGE
            return False

        self.message = None
        self._move(FORM_STEPS[FORM_STEPS.index(self.step) + 1])
        return True

    def back(self) -> bool:
        self._require_editable()
        index = FORM_STEPS.index(self.step)
        if index == 0:
            return False
        self.message = None
        self._move(FORM_STEPS[index - 1])
        return True

    def go_to(self, step: WizardStep) -> None:
        self._require_editable()
        if step not in FORM_STEPS or FORM_STEPS.index(step) > FORM_STEPS.index(self.step):
            raise InvalidTransition(f"Cannot jump forward from {self.step} to {step}")
        if step != self.step:
            self.message = None
            self._move(step)

    async def advance(self) -> Optional[SubmissionOutcome]:
        """The wizard's single "continue" action: submits on PAYMENT, otherwise
        moves to the next step."""
        if self.step in (WizardStep.PAYMENT, WizardStep.SUBMITTING):
            return await self.submit()
        self.next_step()
        return None

    async def submit(self) -> Optional[SubmissionOutcome]:
        """Submit the booking from PAYMENT.

        Returns ``None`` when nothing was sent: either a submission is already
        in flight, or PAYMENT validation failed (errors are on ``self.errors``).
        """
        if self.step == WizardStep.SUBMITTING:
            logger.debug("Submission already in flight, ignoring")
            return None
        if self.step != WizardStep.PAYMENT:
            raise InvalidTransition(f"Cannot submit from {self.step}")

        if not self._validate_current():
            return None

        self.message = None
        self._move(WizardStep.SUBMITTING)
        try:
            outcome = await self.submitter.submit(
                self.form, self.fare, self.vehicle, self.auth, today=self._clock()
            )
        except BaseException:
            self._move(WizardStep.PAYMENT)
            raise

        self.last_outcome = outcome
        self.message = outcome.message

        if outcome.ok:
            self._move(WizardStep.SUCCESS)
        else:
            self._move(WizardStep.PAYMENT)
            for name, msg in outcome.error.field_errors.items():
                setattr(self.errors, name, msg)

        if outcome.redirect_to:
            self._schedule_redirect(outcome.redirect_to, outcome.redirect_after or 0.0)
        return outcome

    def _schedule_redirect(self, path: str, delay: float) -> None:
        if self._navigate is None:
            return
        if self._redirect is not None:
            self._redirect.cancel()
        loop = asyncio.get_running_loop()
        self._redirect = loop.call_later(delay, self._navigate, path)

    async def wait_for_distance(self) -> None:
        await self.resolver.wait_idle()

    def close(self) -> None:
        if self._redirect is not None:
            self._redirect.cancel()
            self._redirect = None
        self.resolver.close()
