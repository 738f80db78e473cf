import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

import httpx

from booking_wizard.core.config import settings
from booking_wizard.core.enums import ErrorCategory, PaymentMethod, WizardStep
from booking_wizard.core.errors import BookingError, SessionExpired, parse_backend_error, DEFAULT_BOOKING_ERROR
from booking_wizard.core.metrics import booking_submissions, booking_submission_duration, track_outcome
from booking_wizard.core.security import ActingUser, AuthContext
from booking_wizard.schemas.booking import Booking, BookingPayload
from booking_wizard.schemas.wizard import FareState, Vehicle, WizardForm
from booking_wizard.services.backend import BackendClient
from booking_wizard.services.notifications import FanOutReport, fan_out_booking_created
from booking_wizard.services.validation import validate

logger = logging.getLogger(__name__)

FIX_FORM_MESSAGE = "Please fix the errors in the form"
INVALID_DATES_MESSAGE = "Please select valid rental dates"
LOGIN_REQUIRED_MESSAGE = "Please log in to complete booking"
SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."
TIMEOUT_MESSAGE = "The booking request timed out. Please try again."
SERVER_ERROR_MESSAGE = "The booking service is unavailable right now. Please try again."
SUCCESS_MESSAGE = "Booking confirmed! Redirecting to dashboard..."


@dataclass
class SubmissionOutcome:
    booking: Optional[Booking] = None
    error: Optional[BookingError] = None
    fan_out: Optional[FanOutReport] = None
    message: str = ""
    redirect_to: Optional[str] = None
    redirect_after: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.booking is not None and self.error is None

    @property
    def metric_label(self) -> str:
        return "success" if self.ok else self.error.category.value


def _failure(
    category: ErrorCategory,
    message: str,
    field_errors: Optional[dict] = None,
    redirect_to: Optional[str] = None,
    redirect_after: Optional[float] = None,
    status_code: Optional[int] = None,
) -> SubmissionOutcome:
    error = BookingError(
        category=category,
        message=message,
        field_errors=field_errors or {},
        redirect_to=redirect_to,
        status_code=status_code,
    )
    return SubmissionOutcome(error=error, message=message, redirect_to=redirect_to, redirect_after=redirect_after)


def build_payload(form: WizardForm, fare: FareState, vehicle: Vehicle, user: ActingUser) -> BookingPayload:
    pickup, dropoff = form.pickup_coords, form.dropoff_coords
    return BookingPayload(
        user_id=user.id,
        vehicle_id=vehicle.id,
        start_date=form.start_date,
        end_date=form.end_date,
        total_days=fare.total_days,
        pickup_location=form.pickup_location.strip(),
        pickup_latitude=pickup.lat if pickup else None,
        pickup_longitude=pickup.lng if pickup else None,
        dropoff_location=form.dropoff_location.strip(),
        dropoff_latitude=dropoff.lat if dropoff else None,
        dropoff_longitude=dropoff.lng if dropoff else None,
        distance_km=fare.distance_km,
        base_price_per_day=fare.price_per_day,
        base_price=fare.base_price,
        distance_price=fare.distance_price,
        total_price=fare.total_price,
        special_requests="",
        payment_method=PaymentMethod.CARD if form.card_number else PaymentMethod.CASH,
    )


class BookingSubmitter:
    """Creates the booking and fans out notifications.

    Every failure is turned into a classified ``SubmissionOutcome`` here;
    callers never see transport exceptions.
    """

    def __init__(self, backend: BackendClient):
        self.backend = backend

    def _session_expired(self, auth: AuthContext, status_code: Optional[int] = None) -> SubmissionOutcome:
        logger.warning(f"Booking rejected, session expired (status {status_code})")
        auth.handle_unauthorized()
        return _failure(
            ErrorCategory.SESSION_EXPIRED,
            SESSION_EXPIRED_MESSAGE,
            redirect_to=settings.AUTH_PATH,
            redirect_after=settings.REDIRECT_DELAY_SECONDS,
            status_code=status_code,
        )

    @track_outcome(booking_submissions, booking_submission_duration)
    async def submit(
        self,
        form: WizardForm,
        fare: FareState,
        vehicle: Vehicle,
        auth: AuthContext,
        today: Optional[date] = None,
    ) -> SubmissionOutcome:
        errors = validate(WizardStep.PAYMENT, form, today)
        if not errors.is_empty():
            return _failure(ErrorCategory.FIELD_VALIDATION, FIX_FORM_MESSAGE, field_errors=errors.messages())

        if fare.total_days == 0:
            return _failure(ErrorCategory.FIELD_VALIDATION, INVALID_DATES_MESSAGE)

        if not auth.is_authenticated:
            return _failure(
                ErrorCategory.PRECONDITION,
                LOGIN_REQUIRED_MESSAGE,
                redirect_to=settings.AUTH_PATH,
                redirect_after=0.0,
            )

        try:
            token = auth.bearer()
        except SessionExpired:
            return self._session_expired(auth)

        payload = build_payload(form, fare, vehicle, auth.user)
        logger.info(
            f"Submitting booking: user={payload.user_id} vehicle={payload.vehicle_id} "
            f"days={payload.total_days} distance={payload.distance_km}km total={payload.total_price:.2f}"
        )

        try:
            response = await self.backend.create_booking(payload, token)
        except httpx.TimeoutException as e:
            logger.error(f"Booking request timed out: {e}")
            return _failure(ErrorCategory.TRANSIENT, TIMEOUT_MESSAGE)
        except httpx.HTTPError as e:
            logger.error(f"Booking request failed before reaching the server: {e}")
            return _failure(ErrorCategory.TRANSIENT, NETWORK_ERROR_MESSAGE)

        status_code = response.status_code

        if response.is_success:
            try:
                booking = Booking.model_validate(response.json())
            except ValueError as e:
                logger.error(f"Unreadable booking response ({status_code}): {e}")
                return _failure(ErrorCategory.BACKEND_VALIDATION, DEFAULT_BOOKING_ERROR, status_code=status_code)

            logger.info(f"Booking {booking.id} created with status {booking.effective_status}")
            report = await fan_out_booking_created(self.backend, booking, auth.user.id, token)
            return SubmissionOutcome(
                booking=booking,
                fan_out=report,
                message=SUCCESS_MESSAGE,
                redirect_to=settings.USER_DASHBOARD_PATH,
                redirect_after=settings.REDIRECT_DELAY_SECONDS,
            )

        if status_code in (401, 403):
            return self._session_expired(auth, status_code)

        if status_code >= 500:
            logger.error(f"Booking service error {status_code}: {response.text[:500]}")
            return _failure(ErrorCategory.TRANSIENT, SERVER_ERROR_MESSAGE, status_code=status_code)

        message = parse_backend_error(response.content, status_code, response.reason_phrase)
        logger.error(f"Booking rejected with {status_code}: {message}")
        return _failure(ErrorCategory.BACKEND_VALIDATION, message, status_code=status_code)
