"""
Notification service layer.

Services:
    NotificationService: Notification creation with idempotency keys

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Template rendering raises KeyError on missing placeholders
    - Email delivery is queued only after the surrounding transaction commits

Usage:
    from notifications.services import NotificationService

    # Create a notification with template rendering
    result = NotificationService.create_notification(
        recipient=user,
        type_key="payment_successful",
        data={"amount": "299.00", "currency": "MXN", "plan_name": "Plan Básico"},
        source_object=invoice,
        idempotency_key=f"payment_successful:{invoice.id}",
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.contenttypes.models import ContentType
from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult

from notifications.models import Notification, NotificationType

if TYPE_CHECKING:
    from django.db.models import Model

    from authentication.models import User


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        create_notification: Create a new notification with template rendering
    """

    @classmethod
    def create_notification(
        cls,
        recipient: User,
        type_key: str,
        data: dict | None = None,
        title: str | None = None,
        body: str | None = None,
        source_object: Model | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a new notification for a user.

        If title/body are not provided, templates from NotificationType are
        rendered using the data dict. Explicit title/body override templates.

        Implementation:
            1. Look up NotificationType by key
            2. Validate type exists and is active
            3. Idempotency check (if key provided)
            4. Render templates (or use explicit values)
            5. Create notification in a savepoint
            6. Queue the email task once the outer transaction commits

        Args:
            recipient: User receiving the notification
            type_key: NotificationType.key to look up
            data: Dict for template rendering
            title: Explicit title (overrides template)
            body: Explicit body (overrides template)
            source_object: Object that triggered the notification (GFK)
            idempotency_key: Optional key to prevent duplicate notifications

        Returns:
            ServiceResult with created Notification if successful

        Error codes:
            TYPE_NOT_FOUND: Notification type key doesn't exist
            TYPE_INACTIVE: Notification type is deactivated
            DUPLICATE: Notification with this idempotency_key already exists

        Raises:
            KeyError: If template placeholder is missing from data
        """
        # Import tasks here to avoid circular imports
        from notifications import tasks

        data = data or {}

        try:
            notification_type = NotificationType.objects.get(key=type_key)
        except NotificationType.DoesNotExist:
            cls.get_logger().warning(f"Notification type not found: {type_key}")
            return ServiceResult.failure(
                f"Notification type not found: {type_key}",
                error_code="TYPE_NOT_FOUND",
            )

        if not notification_type.is_active:
            cls.get_logger().info(
                f"Notification type inactive: {type_key} - skipping creation"
            )
            return ServiceResult.failure(
                f"Notification type is inactive: {type_key}",
                error_code="TYPE_INACTIVE",
            )

        if idempotency_key and Notification.objects.filter(
            idempotency_key=idempotency_key
        ).exists():
            cls.get_logger().info(
                f"Duplicate notification prevented: idempotency_key={idempotency_key}"
            )
            return cls._duplicate(idempotency_key)

        # KeyError is raised if placeholder is missing
        rendered_title = title or notification_type.title_template.format(**data)
        rendered_body = body or notification_type.body_template.format(**data)

        content_type = None
        object_id = None
        if source_object is not None:
            content_type = ContentType.objects.get_for_model(source_object)
            object_id = str(source_object.pk)

        try:
            # Savepoint so a lost race on the idempotency key leaves the
            # caller's transaction usable
            with transaction.atomic():
                notification = Notification.objects.create(
                    notification_type=notification_type,
                    recipient=recipient,
                    title=rendered_title,
                    body=rendered_body,
                    data=data,
                    content_type=content_type,
                    object_id=object_id,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            if not idempotency_key:
                raise
            cls.get_logger().info(
                f"Duplicate notification prevented on insert: "
                f"idempotency_key={idempotency_key}"
            )
            return cls._duplicate(idempotency_key)

        cls.get_logger().info(
            f"Created notification {notification.id} of type {type_key} "
            f"for user {recipient.id}"
        )

        if notification_type.supports_email:
            notification_id = str(notification.id)
            transaction.on_commit(
                lambda: tasks.send_notification_email.delay(notification_id)
            )

        return ServiceResult.success(notification)

    @classmethod
    def _duplicate(cls, idempotency_key: str) -> ServiceResult[Notification]:
        return ServiceResult.failure(
            f"Notification with idempotency_key already exists: {idempotency_key}",
            error_code="DUPLICATE",
        )
