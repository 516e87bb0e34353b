"""
Unit tests for notification services.

Test Classes:
    TestNotificationServiceCreate: Tests for create_notification()
    TestNotificationIdempotency: Duplicate suppression by idempotency key
    TestNotificationEmailQueueing: Email task is queued after commit
    TestNotificationServiceMarkAsRead: Tests for mark_as_read() and mark_all_as_read()
"""

from unittest.mock import patch

import pytest
from django.contrib.contenttypes.models import ContentType

from notifications.models import Notification, NotificationKey
from notifications.services import NotificationService
from notifications.tests.factories import NotificationFactory


class TestNotificationServiceCreate:
    """Tests for NotificationService.create_notification()."""

    def test_creates_notification_with_rendered_templates(
        self, notification_type_with_placeholders, user
    ):
        """Successfully creates notification with rendered template."""
        result = NotificationService.create_notification(
            recipient=user,
            type_key="template_notification",
            data={"user_name": "Ana", "plan_name": "Premium"},
        )

        assert result.success
        assert result.data.title == "Hello, Ana!"
        assert result.data.body == "Your Premium plan is ready."
        assert result.data.recipient == user

    def test_explicit_title_body_overrides_template(
        self, notification_type_with_placeholders, user
    ):
        """Explicit title and body skip template rendering."""
        result = NotificationService.create_notification(
            recipient=user,
            type_key="template_notification",
            title="Custom Title",
            body="Custom Body",
        )

        assert result.success
        assert result.data.title == "Custom Title"
        assert result.data.body == "Custom Body"

    def test_fails_for_unknown_type_key(self, user):
        """Returns failure for unknown notification type key."""
        result = NotificationService.create_notification(
            recipient=user,
            type_key="nonexistent_type",
            title="Test",
        )

        assert not result.success
        assert result.error_code == "TYPE_NOT_FOUND"
        assert "nonexistent_type" in result.error

    def test_fails_for_inactive_type(self, inactive_notification_type, user):
        """Returns failure for inactive notification type."""
        result = NotificationService.create_notification(
            recipient=user,
            type_key="inactive_notification",
            title="Test",
        )

        assert not result.success
        assert result.error_code == "TYPE_INACTIVE"
        assert not Notification.objects.exists()

    def test_missing_placeholder_raises(self, notification_type_with_placeholders, user):
        """Raises KeyError when a template placeholder is missing."""
        with pytest.raises(KeyError):
            NotificationService.create_notification(
                recipient=user,
                type_key="template_notification",
                data={"user_name": "Ana"},
            )

    def test_links_source_object(self, user, other_user):
        """Source object is stored through the generic foreign key."""
        result = NotificationService.create_notification(
            recipient=user,
            type_key=NotificationKey.PAYMENT_FAILED,
            data={
                "amount": "299.00",
                "currency": "MXN",
                "plan_name": "Plan Básico",
                "reason": "Card declined",
            },
            source_object=other_user,
        )

        notification = result.data
        assert notification.content_type == ContentType.objects.get_for_model(other_user)
        assert notification.object_id == str(other_user.pk)
        assert notification.source_object == other_user

    def test_seeded_payment_successful_template(self, user):
        """The migration-seeded payment template renders amount and plan."""
        result = NotificationService.create_notification(
            recipient=user,
            type_key=NotificationKey.PAYMENT_SUCCESSFUL,
            data={"amount": "299.00", "currency": "MXN", "plan_name": "Plan Básico"},
        )

        assert result.success
        assert "299.00 MXN" in result.data.body
        assert "Plan Básico" in result.data.body


class TestNotificationIdempotency:
    """Tests for idempotency key handling."""

    def test_second_call_with_same_key_is_duplicate(self, user):
        """Only one notification exists per idempotency key."""
        kwargs = {
            "recipient": user,
            "type_key": NotificationKey.SUBSCRIPTION_RENEWAL_REMINDER,
            "data": {"plan_name": "Plan Premium", "renewal_date": "2026-11-01"},
            "idempotency_key": "renewal_reminder:abc:2026-11-01",
        }

        first = NotificationService.create_notification(**kwargs)
        second = NotificationService.create_notification(**kwargs)

        assert first.success
        assert not second.success
        assert second.error_code == "DUPLICATE"
        assert Notification.objects.filter(recipient=user).count() == 1

    def test_lost_insert_race_reports_duplicate(self, user):
        """An IntegrityError on insert is reported as DUPLICATE, not raised."""
        NotificationFactory(recipient=user, idempotency_key="payment_failed:1")

        with patch.object(Notification.objects, "filter") as mock_filter:
            # Pretend the pre-check missed the row a concurrent worker inserted
            mock_filter.return_value.exists.return_value = False
            result = NotificationService.create_notification(
                recipient=user,
                type_key=NotificationKey.PAYMENT_FAILED,
                title="Payment failed",
                body="Declined",
                idempotency_key="payment_failed:1",
            )

        assert not result.success
        assert result.error_code == "DUPLICATE"
        assert Notification.objects.filter(idempotency_key="payment_failed:1").count() == 1

    def test_notifications_without_key_are_not_deduplicated(self, user):
        """Null idempotency keys never collide."""
        for _ in range(2):
            result = NotificationService.create_notification(
                recipient=user,
                type_key=NotificationKey.PAYMENT_FAILED,
                title="Payment failed",
                body="Declined",
            )
            assert result.success

        assert Notification.objects.filter(recipient=user).count() == 2


class TestNotificationEmailQueueing:
    """Tests for queueing the email delivery task."""

    def test_email_task_queued_on_commit(self, user, django_capture_on_commit_callbacks):
        """The email task is queued once the transaction commits."""
        with patch("notifications.tasks.send_notification_email.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True) as callbacks:
                result = NotificationService.create_notification(
                    recipient=user,
                    type_key=NotificationKey.PAYMENT_FAILED,
                    title="Payment failed",
                    body="Declined",
                )

        assert len(callbacks) == 1
        mock_delay.assert_called_once_with(str(result.data.id))

    def test_email_not_queued_for_in_app_only_type(
        self, user, in_app_only_type, django_capture_on_commit_callbacks
    ):
        """Types without email support never queue the task."""
        with patch("notifications.tasks.send_notification_email.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True) as callbacks:
                NotificationService.create_notification(
                    recipient=user,
                    type_key="in_app_only",
                )

        assert callbacks == []
        mock_delay.assert_not_called()

    def test_email_not_queued_for_duplicate(self, user, django_capture_on_commit_callbacks):
        """A suppressed duplicate queues nothing."""
        NotificationFactory(recipient=user, idempotency_key="payment_successful:9")

        with django_capture_on_commit_callbacks() as callbacks:
            NotificationService.create_notification(
                recipient=user,
                type_key=NotificationKey.PAYMENT_SUCCESSFUL,
                title="Payment received",
                idempotency_key="payment_successful:9",
            )

        assert callbacks == []
