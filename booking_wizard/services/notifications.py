import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from booking_wizard.core.config import settings
from booking_wizard.core.enums import BookingStatus, NotificationCategory, NotificationType, UserRole
from booking_wizard.core.metrics import notification_dispatches
from booking_wizard.schemas.booking import Booking
from booking_wizard.schemas.notification import NotificationCreate
from booking_wizard.services.backend import BackendClient

logger = logging.getLogger(__name__)

# (role, status) -> (title, message template, type)
BOOKING_NOTIFICATIONS: Dict[Tuple[UserRole, BookingStatus], Tuple[str, str, NotificationType]] = {
    (UserRole.USER, BookingStatus.CONFIRMED): (
        "Booking Confirmed",
        "Your booking has been confirmed successfully!",
        NotificationType.SUCCESS,
    ),
    (UserRole.USER, BookingStatus.PENDING): (
        "Booking Pending",
        "Your booking request has been submitted and is pending approval.",
        NotificationType.INFO,
    ),
    (UserRole.USER, BookingStatus.CANCELLED): (
        "Booking Cancelled",
        "Your booking has been cancelled.",
        NotificationType.WARNING,
    ),
    (UserRole.USER, BookingStatus.COMPLETED): (
        "Trip Completed",
        "Your trip has been completed. Please leave a review!",
        NotificationType.SUCCESS,
    ),
    (UserRole.ADMIN, BookingStatus.PENDING): (
        "New Booking Request",
        "A new booking request #{booking_id} has been received.",
        NotificationType.INFO,
    ),
    (UserRole.ADMIN, BookingStatus.CONFIRMED): (
        "Booking Confirmed",
        "Booking #{booking_id} has been confirmed.",
        NotificationType.SUCCESS,
    ),
    (UserRole.ADMIN, BookingStatus.CANCELLED): (
        "Booking Cancelled",
        "Booking #{booking_id} has been cancelled.",
        NotificationType.WARNING,
    ),
}


def build_booking_notification(
    booking_id: int,
    recipient_id: int,
    role: UserRole,
    status: str,
) -> NotificationCreate:
    try:
        title, template, kind = BOOKING_NOTIFICATIONS[(role, BookingStatus(status))]
    except (KeyError, ValueError):
        title, template, kind = "Booking Update", "Booking #{booking_id} is now {status}.", NotificationType.INFO

    return NotificationCreate(
        title=title,
        message=template.format(booking_id=booking_id, status=status),
        type=kind,
        category=NotificationCategory.BOOKING,
        user_id=recipient_id,
        metadata={"bookingId": booking_id},
        action_url=settings.ADMIN_DASHBOARD_PATH if role == UserRole.ADMIN else settings.USER_DASHBOARD_PATH,
    )


@dataclass
class FanOutReport:
    booking_id: int
    status: str
    user_notified: bool = False
    admins_attempted: List[int] = field(default_factory=list)
    admins_failed: List[int] = field(default_factory=list)
    roster_error: Optional[str] = None

    @property
    def admins_notified(self) -> List[int]:
        return [a for a in self.admins_attempted if a not in self.admins_failed]


async def notify_recipient(
    backend: BackendClient,
    booking_id: int,
    recipient_id: int,
    role: UserRole,
    status: str,
    token: str,
) -> bool:
    notification = build_booking_notification(booking_id, recipient_id, role, status)
    try:
        await backend.create_notification(notification, token)
    except Exception as e:
        notification_dispatches.labels(role=role.value, status="failed").inc()
        logger.warning(
            f"Notification delivery failed for {role.value.lower()} {recipient_id} "
            f"on booking {booking_id}: {e}"
        )
        return False

    notification_dispatches.labels(role=role.value, status="delivered").inc()
    logger.info(f"Notified {role.value.lower()} {recipient_id} of booking {booking_id} ({status})")
    return True


async def fan_out_booking_created(
    backend: BackendClient,
    booking: Booking,
    user_id: int,
    token: str,
) -> FanOutReport:
    """Notify the customer, then every administrator, that a booking exists.

    Every dispatch is best-effort: nothing raised here reaches the caller and
    one failed recipient does not stop the others.
    """
    status = booking.effective_status
    report = FanOutReport(booking_id=booking.id, status=status)

    report.user_notified = await notify_recipient(backend, booking.id, user_id, UserRole.USER, status, token)

    try:
        admin_ids = await backend.list_admins(token)
    except Exception as e:
        report.roster_error = str(e)
        logger.warning(f"Error notifying admins of booking {booking.id}: could not load roster: {e}")
        return report

    for admin_id in admin_ids:
        report.admins_attempted.append(admin_id)
        delivered = await notify_recipient(backend, booking.id, admin_id, UserRole.ADMIN, status, token)
        if not delivered:
            report.admins_failed.append(admin_id)

    logger.info(
        f"Booking {booking.id} fan-out complete: user={'ok' if report.user_notified else 'failed'}, "
        f"admins {len(report.admins_notified)}/{len(report.admins_attempted)}"
    )
    return report
