from __future__ import annotations

from rest_framework import status

from event_checkin.participants.services import register_participant
from tests.permissions.factories import ROLE_ADMIN
from tests.permissions.factories import ROLE_ASSISTANT
from tests.permissions.factories import ROLE_STAFF
from tests.permissions.mixins import RoleAPITestCase

LIST = "api_v1:event-participant-list"
DETAIL = "api_v1:event-participant-detail"


class TestParticipantPermissions(RoleAPITestCase):
    def register(self, name="Ana"):
        return register_participant(
            self.event, full_name=name, email=f"{name.lower()}@example.com", area="X"
        )

    def test_assistant_can_list_and_quick_add(self):
        self.assert_allowed(self.get(LIST, role=ROLE_ASSISTANT))
        created = self.post(
            LIST,
            role=ROLE_ASSISTANT,
            payload={"full_name": "Eva", "email": "eva@example.com", "area": "X"},
        )
        self.assert_allowed(created)

    def test_delete_is_admin_only(self):
        participant = self.register()
        self.assert_denied(self.delete(DETAIL, role=ROLE_ASSISTANT, pk=participant.pk))
        self.assert_allowed(self.delete(DETAIL, role=ROLE_ADMIN, pk=participant.pk))
        other = self.register("Luis")
        self.assert_allowed(self.delete(DETAIL, role=ROLE_STAFF, pk=other.pk))

    def test_anonymous_cannot_delete(self):
        participant = self.register()
        response = self.delete(DETAIL, role=None, pk=participant.pk)
        assert response.status_code in (
            status.HTTP_401_UNAUTHORIZED,
            status.HTTP_403_FORBIDDEN,
        )
