import pytest
import httpx

from booking_wizard.core.enums import UserRole
from booking_wizard.schemas.booking import Booking
from booking_wizard.services.notifications import build_booking_notification, fan_out_booking_created


@pytest.mark.notifications
class TestNotificationContent:

    @pytest.mark.parametrize("role,status,title,message,kind", [
        (UserRole.USER, "PENDING", "Booking Pending",
         "Your booking request has been submitted and is pending approval.", "INFO"),
        (UserRole.USER, "CONFIRMED", "Booking Confirmed",
         "Your booking has been confirmed successfully!", "SUCCESS"),
        (UserRole.USER, "COMPLETED", "Trip Completed",
         "Your trip has been completed. Please leave a review!", "SUCCESS"),
        (UserRole.ADMIN, "PENDING", "New Booking Request",
         "A new booking request #42 has been received.", "INFO"),
        (UserRole.ADMIN, "CANCELLED", "Booking Cancelled",
         "Booking #42 has been cancelled.", "WARNING"),
    ])
    def test_table(self, role, status, title, message, kind):
        notification = build_booking_notification(42, 7, role, status)
        assert notification.title == title
        assert notification.message == message
        assert notification.type.value == kind

    def test_fallback_text(self):
        notification = build_booking_notification(42, 100, UserRole.ADMIN, "COMPLETED")
        assert notification.title == "Booking Update"
        assert notification.message == "Booking #42 is now COMPLETED."

        unknown = build_booking_notification(42, 7, UserRole.USER, "ON_HOLD")
        assert unknown.title == "Booking Update"

    def test_wire_format(self):
        wire = build_booking_notification(42, 100, UserRole.ADMIN, "PENDING").to_wire()
        assert wire["userId"] == 100
        assert wire["category"] == "BOOKING"
        assert wire["isRead"] is False
        assert wire["metadata"] == {"bookingId": 42}
        assert wire["actionUrl"] == "/dashboard/admin"

        user_wire = build_booking_notification(42, 7, UserRole.USER, "PENDING").to_wire()
        assert user_wire["actionUrl"] == "/dashboard/user"


@pytest.mark.notifications
@pytest.mark.integration
class TestFanOut:

    @pytest.mark.asyncio
    async def test_user_then_every_admin(self, backend, backend_stub, user_token):
        report = await fan_out_booking_created(backend, Booking(id=42, status="PENDING"), 7, user_token)

        recipients = [n["userId"] for n in backend_stub.notifications()]
        assert recipients == [7, 100, 101, 102]
        assert report.user_notified
        assert report.admins_notified == [100, 101, 102]
        for request in backend_stub.sent("POST", "/api/notifications"):
            assert request.headers["Authorization"] == f"Bearer {user_token}"

    @pytest.mark.asyncio
    async def test_one_admin_failure_does_not_stop_the_rest(self, backend, backend_stub, user_token):
        backend_stub.failing_recipients = {101}

        report = await fan_out_booking_created(backend, Booking(id=42), 7, user_token)

        assert len(backend_stub.sent("POST", "/api/notifications")) == 4
        assert report.admins_attempted == [100, 101, 102]
        assert report.admins_failed == [101]
        assert report.admins_notified == [100, 102]

    @pytest.mark.asyncio
    async def test_user_failure_still_notifies_admins(self, backend, backend_stub, user_token):
        backend_stub.failing_recipients = {7}

        report = await fan_out_booking_created(backend, Booking(id=42), 7, user_token)

        assert not report.user_notified
        assert report.admins_notified == [100, 101, 102]

    @pytest.mark.asyncio
    async def test_roster_failure_is_reported(self, backend, backend_stub, user_token):
        backend_stub.admins_status = 403

        report = await fan_out_booking_created(backend, Booking(id=42), 7, user_token)

        assert report.user_notified
        assert report.roster_error is not None
        assert report.admins_attempted == []

    @pytest.mark.asyncio
    async def test_network_errors_are_swallowed(self, backend, backend_stub, user_token):
        backend_stub.raise_on["/api/notifications"] = httpx.ConnectError

        report = await fan_out_booking_created(backend, Booking(id=42), 7, user_token)

        assert not report.user_notified
        assert report.admins_failed == [100, 101, 102]

    @pytest.mark.asyncio
    async def test_status_defaults_to_pending(self, backend, backend_stub, user_token):
        report = await fan_out_booking_created(backend, Booking(id=42), 7, user_token)

        assert report.status == "PENDING"
        titles = [n["title"] for n in backend_stub.notifications()]
        assert titles[0] == "Booking Pending"
        assert titles[1:] == ["New Booking Request"] * 3
