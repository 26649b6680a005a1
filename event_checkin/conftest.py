import pytest
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from event_checkin.events.models import Event
from event_checkin.realtime.broadcaster import Broadcaster
from event_checkin.realtime.broadcaster import set_broadcaster
from event_checkin.users.models import User

TEST_PASSWORD = "TestPass123!"  # noqa: S105 - test credentials only


@pytest.fixture(autouse=True)
def broadcaster():
    """A fresh in-process broadcaster per test."""
    instance = Broadcaster(buffer_size=10)
    set_broadcaster(instance)
    yield instance
    set_broadcaster(None)


@pytest.fixture
def user(db) -> User:
    return User.objects.create_user(
        username="assistant",
        email="assistant@example.com",
        password=TEST_PASSWORD,
    )


@pytest.fixture
def admin_user(db) -> User:
    admin = User.objects.create_user(
        username="organizer",
        email="organizer@example.com",
        password=TEST_PASSWORD,
    )
    group, _ = Group.objects.get_or_create(name="Admin")
    admin.groups.add(group)
    return admin


@pytest.fixture
def event(db) -> Event:
    return Event.objects.create(name="Annual Summit")


@pytest.fixture
def other_event(db) -> Event:
    return Event.objects.create(name="Partner Day")


@pytest.fixture
def api_client(user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def admin_client(admin_user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client
