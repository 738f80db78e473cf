import pytest
from datetime import date

from booking_wizard.core.enums import WizardStep
from booking_wizard.schemas.wizard import WizardForm
from booking_wizard.services.validation import validate, validate_dates, validate_locations, validate_payment

TODAY = date(2025, 5, 20)


def payment_form(**overrides):
    data = {
        "card_number": "4111111111111111",
        "expiry": "01/99",
        "cvv": "123",
        "card_name": "Kasun Perera",
    }
    data.update(overrides)
    return WizardForm(**data)


@pytest.mark.unit
@pytest.mark.validation
class TestDateRules:

    def test_missing_dates(self):
        errors = validate_dates(WizardForm(), TODAY)
        assert errors.start_date == "Pickup date is required"
        assert errors.end_date == "Return date is required"

    def test_start_in_past(self):
        form = WizardForm(start_date=date(2025, 5, 19), end_date=date(2025, 5, 25))
        errors = validate_dates(form, TODAY)
        assert errors.start_date == "Pickup date cannot be in the past"
        assert errors.end_date is None

    def test_start_today_is_allowed(self):
        form = WizardForm(start_date=TODAY, end_date=date(2025, 5, 21))
        assert validate_dates(form, TODAY).is_empty()

    @pytest.mark.parametrize("end", [date(2025, 6, 1), date(2025, 5, 30)])
    def test_end_must_follow_start(self, end):
        form = WizardForm(start_date=date(2025, 6, 1), end_date=end)
        errors = validate_dates(form, TODAY)
        assert errors.end_date == "Return date must be after pickup date"

    def test_ordering_checked_only_when_both_present(self):
        form = WizardForm(end_date=date(2025, 6, 1))
        errors = validate_dates(form, TODAY)
        assert errors.start_date == "Pickup date is required"
        assert errors.end_date is None


@pytest.mark.unit
@pytest.mark.validation
class TestLocationRules:

    def test_required(self):
        errors = validate_locations(WizardForm(pickup_location="   "), TODAY)
        assert errors.pickup_location == "Pickup location is required"
        assert errors.dropoff_location == "Drop-off location is required"

    def test_minimum_length_after_trim(self):
        form = WizardForm(pickup_location="  ab  ", dropoff_location="Kandy")
        errors = validate_locations(form, TODAY)
        assert errors.pickup_location == "Pickup location must be at least 3 characters"
        assert errors.dropoff_location is None

    def test_coordinates_are_not_required(self):
        form = WizardForm(pickup_location="Colombo Fort", dropoff_location="Galle Face Green")
        assert form.pickup_coords is None
        assert validate_locations(form, TODAY).is_empty()


@pytest.mark.unit
@pytest.mark.validation
class TestPaymentRules:

    def test_valid_card_passes(self):
        assert validate_payment(payment_form(), TODAY).is_empty()

    def test_short_card_number_fails(self):
        errors = validate_payment(payment_form(card_number="411111111111"), TODAY)
        assert errors.card_number == "Card number must be 16 digits"

    def test_card_number_whitespace_is_ignored(self):
        errors = validate_payment(payment_form(card_number="4111 1111 1111 1111"), TODAY)
        assert errors.card_number is None

    def test_card_number_letters_fail(self):
        errors = validate_payment(payment_form(card_number="4111-1111-1111-1111"), TODAY)
        assert errors.card_number == "Card number must be 16 digits"

    def test_past_expiry_fails(self):
        errors = validate_payment(payment_form(expiry="01/20"), TODAY)
        assert errors.expiry == "Card has expired"

    def test_future_expiry_passes(self):
        assert validate_payment(payment_form(expiry="01/99"), TODAY).expiry is None

    def test_expiry_current_month_is_still_valid(self):
        assert validate_payment(payment_form(expiry="05/25"), TODAY).expiry is None
        assert validate_payment(payment_form(expiry="04/25"), TODAY).expiry == "Card has expired"

    @pytest.mark.parametrize("expiry", ["13/25", "1/25", "00/30", "12-30", "12/2030"])
    def test_expiry_format(self, expiry):
        errors = validate_payment(payment_form(expiry=expiry), TODAY)
        assert errors.expiry == "Invalid format (MM/YY)"

    @pytest.mark.parametrize("cvv", ["12", "1234", "12a"])
    def test_cvv_format(self, cvv):
        errors = validate_payment(payment_form(cvv=cvv), TODAY)
        assert errors.cvv == "CVV must be 3 digits"

    @pytest.mark.parametrize("field,value,message", [
        ("card_number", "４" * 16, "Card number must be 16 digits"),
        ("card_number", "٤١١١١١١١١١١١١١١١", "Card number must be 16 digits"),
        ("cvv", "١٢٣", "CVV must be 3 digits"),
        ("cvv", "１２３", "CVV must be 3 digits"),
        ("expiry", "０１/９９", "Invalid format (MM/YY)"),
        ("expiry", "01/٩٩", "Invalid format (MM/YY)"),
    ])
    def test_non_ascii_digits_rejected(self, field, value, message):
        errors = validate_payment(payment_form(**{field: value}), TODAY)
        assert getattr(errors, field) == message

    def test_short_card_name(self):
        errors = validate_payment(payment_form(card_name=" Al "), TODAY)
        assert errors.card_name == "Name must be at least 3 characters"

    def test_all_required_messages(self):
        errors = validate_payment(WizardForm(), TODAY)
        assert errors.messages() == {
            "card_number": "Card number is required",
            "expiry": "Expiry date is required",
            "cvv": "CVV is required",
            "card_name": "Name on card is required",
        }


@pytest.mark.unit
@pytest.mark.validation
class TestValidateDispatch:

    def test_only_step_fields_are_reported(self):
        errors = validate(WizardStep.LOCATIONS, WizardForm(), TODAY)
        assert set(errors.messages()) == {"pickup_location", "dropoff_location"}

    def test_steps_without_rules(self):
        with pytest.raises(ValueError):
            validate(WizardStep.SUCCESS, WizardForm(), TODAY)
