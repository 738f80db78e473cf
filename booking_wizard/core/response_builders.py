import re
from typing import Optional
from booking_wizard.schemas.wizard import FormView, OutcomeView, WizardForm, WizardView
from booking_wizard.services.sessions import WizardSession
from booking_wizard.services.submitter import SubmissionOutcome


def _card_last4(card_number: str) -> Optional[str]:
    digits = re.sub(r"\D", "", card_number)
    return digits[-4:] if digits else None


def build_form_view(form: WizardForm) -> FormView:
    return FormView(
        start_date=form.start_date,
        end_date=form.end_date,
        pickup_location=form.pickup_location,
        dropoff_location=form.dropoff_location,
        pickup_coords=form.pickup_coords,
        dropoff_coords=form.dropoff_coords,
        card_last4=_card_last4(form.card_number),
        expiry=form.expiry,
        card_name=form.card_name,
    )


def build_outcome_view(outcome: SubmissionOutcome) -> OutcomeView:
    return OutcomeView(
        ok=outcome.ok,
        message=outcome.message,
        category=outcome.error.category.value if outcome.error else None,
        booking_id=outcome.booking.id if outcome.booking else None,
        booking_status=outcome.booking.effective_status if outcome.booking else None,
        redirect_to=outcome.redirect_to,
        redirect_after=outcome.redirect_after,
    )


def build_wizard_view(session: WizardSession) -> WizardView:
    wizard = session.wizard
    return WizardView(
        id=session.id,
        vehicle_id=wizard.vehicle.id,
        step=wizard.step,
        form=build_form_view(wizard.form),
        errors=wizard.errors.messages(),
        fare=wizard.fare,
        is_calculating_distance=wizard.resolver.is_calculating,
        message=wizard.message,
        outcome=build_outcome_view(wizard.last_outcome) if wizard.last_outcome else None,
    )
