from enum import Enum


class WizardStep(str, Enum):
    DATES = "dates"
    LOCATIONS = "locations"
    PAYMENT = "payment"
    SUBMITTING = "submitting"
    SUCCESS = "success"

    def __str__(self):
        return self.value


# Steps the user fills in, in order. SUBMITTING and SUCCESS are not editable.
FORM_STEPS = (WizardStep.DATES, WizardStep.LOCATIONS, WizardStep.PAYMENT)


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    DRIVER = "DRIVER"

    def __str__(self):
        return self.value


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    def __str__(self):
        return self.value


class PaymentMethod(str, Enum):
    CARD = "CARD"
    CASH = "CASH"

    def __str__(self):
        return self.value


class NotificationType(str, Enum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"

    def __str__(self):
        return self.value


class NotificationCategory(str, Enum):
    BOOKING = "BOOKING"
    PAYMENT = "PAYMENT"
    TRIP = "TRIP"
    REVIEW = "REVIEW"
    SYSTEM = "SYSTEM"

    def __str__(self):
        return self.value


class ErrorCategory(str, Enum):
    FIELD_VALIDATION = "field_validation"
    PRECONDITION = "precondition"
    SESSION_EXPIRED = "session_expired"
    BACKEND_VALIDATION = "backend_validation"
    TRANSIENT = "transient"

    def __str__(self):
        return self.value
