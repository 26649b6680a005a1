from __future__ import annotations

from unittest import mock

from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework import status

from tests.permissions.factories import ROLE_ADMIN
from tests.permissions.factories import ROLE_ASSISTANT
from tests.permissions.factories import ROLE_STAFF
from tests.permissions.mixins import RoleAPITestCase

LIST = "api_v1:event-preregistration-list"
SEARCH = "api_v1:event-preregistration-search"
CONVERT = "api_v1:event-preregistration-convert"
ORACLE_FACTORY = (
    "event_checkin.preregistration.services.classifier.get_llm_client_from_settings"
)


class FixedOracle:
    def generate_json(self, prompt, system=None):
        return {
            "identifier_type": "email",
            "identifier_column": "Email",
            "mappings": {"full_name": "Name", "email": "Email"},
        }


class TestPreRegistrationPermissions(RoleAPITestCase):
    def upload(self, role):
        self.authenticate(role)
        sheet = SimpleUploadedFile(
            "guests.csv", b"Name,Email\nAna,ana@example.com\nLuis,luis@example.com\n"
        )
        with mock.patch(ORACLE_FACTORY, return_value=FixedOracle()):
            return self.client.post(self.url(LIST), {"file": sheet}, format="multipart")

    def test_upload_is_admin_only(self):
        self.assert_denied(self.upload(ROLE_ASSISTANT))
        self.assert_allowed(self.upload(ROLE_ADMIN))
        self.assert_allowed(self.upload(ROLE_STAFF))

    def test_clear_is_admin_only(self):
        self.assert_denied(self.delete(LIST, role=ROLE_ASSISTANT))
        self.assert_allowed(self.delete(LIST, role=ROLE_ADMIN))

    def test_assistant_can_browse_and_convert(self):
        self.assert_allowed(self.get(LIST, role=ROLE_ASSISTANT))
        self.assert_allowed(self.get(SEARCH, role=ROLE_ASSISTANT, data={"q": "3011"}))
        converted = self.post(
            CONVERT, role=ROLE_ASSISTANT, pk=self.candidates[0].pk
        )
        self.assert_allowed(converted)

    def test_anonymous_is_rejected(self):
        for response in (
            self.get(LIST, role=None),
            self.get(SEARCH, role=None, data={"q": "3011"}),
            self.post(CONVERT, role=None, pk=self.candidates[0].pk),
            self.delete(LIST, role=None),
        ):
            assert response.status_code in (
                status.HTTP_401_UNAUTHORIZED,
                status.HTTP_403_FORBIDDEN,
            )
