"""
Test configuration and fixtures for notification tests.

The billing notification types are seeded by migration, so tests that
use them only need database access.
"""

import pytest

from authentication.tests.factories import UserFactory
from notifications.tests.factories import NotificationTypeFactory


@pytest.fixture
def user(db):
    """Create a user to receive notifications."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    """Create another user for ownership tests."""
    return UserFactory()


@pytest.fixture
def notification_type_with_placeholders(db):
    """Create an active type whose templates need user_name and plan_name."""
    return NotificationTypeFactory(
        key="template_notification",
        title_template="Hello, {user_name}!",
        body_template="Your {plan_name} plan is ready.",
    )


@pytest.fixture
def inactive_notification_type(db):
    """Create a deactivated notification type."""
    return NotificationTypeFactory(key="inactive_notification", is_active=False)


@pytest.fixture
def in_app_only_type(db):
    """Create a type that is never emailed."""
    return NotificationTypeFactory(key="in_app_only", supports_email=False)
