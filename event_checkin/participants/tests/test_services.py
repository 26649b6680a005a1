import pytest
from django.core.exceptions import ValidationError
from django.db.models import ProtectedError

from event_checkin.participants.models import Participant
from event_checkin.participants.services import delete_participant
from event_checkin.participants.services import event_stats
from event_checkin.participants.services import register_participant
from event_checkin.preregistration.services import reconciliation
from event_checkin.preregistration.services import store
from event_checkin.realtime.events.registrations import PARTICIPANT_CREATED
from event_checkin.realtime.events.registrations import PARTICIPANT_DELETED


@pytest.mark.django_db
class TestRegisterParticipant:
    def test_creates_registration(self, event, user):
        person = register_participant(
            event,
            full_name="  Ana Pérez ",
            email="ana@example.com",
            area="Ventas",
            national_id="",
            created_by=user,
        )
        assert person.full_name == "Ana Pérez"
        assert person.national_id is None
        assert person.participant_type == Participant.ParticipantType.PARTICIPANT
        assert person.created_by == user

    def test_blank_required_fields(self, event):
        with pytest.raises(ValidationError) as excinfo:
            register_participant(event, full_name=" ", email="", area="Ventas")
        assert set(excinfo.value.message_dict) == {"full_name", "email"}
        assert not Participant.objects.exists()

    def test_unknown_participant_type(self, event):
        with pytest.raises(ValidationError) as excinfo:
            register_participant(
                event,
                full_name="Ana",
                email="ana@example.com",
                area="Ventas",
                participant_type="vip",
            )
        assert "participant_type" in excinfo.value.message_dict

    def test_broadcasts_after_commit(
        self, event, broadcaster, django_capture_on_commit_callbacks
    ):
        subscription = broadcaster.subscribe(event.pk)
        with django_capture_on_commit_callbacks(execute=True):
            person = register_participant(
                event, full_name="Ana", email="ana@example.com", area="Ventas"
            )
        change = subscription.get(timeout=0.1)
        assert change.type == PARTICIPANT_CREATED
        assert change.payload["id"] == person.pk
        assert change.payload["email"] == "ana@example.com"


@pytest.mark.django_db
class TestDeleteParticipant:
    def test_deletes_and_broadcasts_after_commit(
        self, event, broadcaster, django_capture_on_commit_callbacks
    ):
        person = register_participant(
            event, full_name="Ana", email="ana@example.com", area="Ventas"
        )
        person_id = person.pk
        subscription = broadcaster.subscribe(event.pk)
        with django_capture_on_commit_callbacks(execute=True):
            delete_participant(person)
        assert not Participant.objects.filter(pk=person_id).exists()
        change = subscription.get(timeout=0.1)
        assert change.type == PARTICIPANT_DELETED
        assert change.event_id == event.pk
        assert change.payload == {"id": person_id}

    def test_converted_registration_is_protected(
        self, event, broadcaster, django_capture_on_commit_callbacks
    ):
        (candidate,) = store.replace_all(
            event.pk, [{"identifier_type": "dni", "identifier_value": "1"}]
        )
        person = reconciliation.convert(event.pk, candidate.pk, area_override="X")
        subscription = broadcaster.subscribe(event.pk)
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(ProtectedError):
                delete_participant(person)
        assert callbacks == []
        assert subscription.pending == 0
        assert Participant.objects.filter(pk=person.pk).exists()


@pytest.mark.django_db
def test_event_stats(event, other_event):
    for name, area in [("Ana", "Ventas"), ("Luis", "Ventas"), ("Eva", "Prensa")]:
        register_participant(
            event, full_name=name, email=f"{name}@example.com", area=area
        )
    register_participant(
        other_event, full_name="Otro", email="otro@example.com", area="Ventas"
    )
    first, _ = store.replace_all(
        event.pk,
        [
            {"identifier_type": "dni", "identifier_value": "1"},
            {"identifier_type": "dni", "identifier_value": "2"},
        ],
    )
    reconciliation.convert(event.pk, first.pk, area_override="Prensa")

    stats = event_stats(event)

    assert stats["total"] == 4
    assert stats["by_area"] == [
        {"area": "Prensa", "count": 2},
        {"area": "Ventas", "count": 2},
    ]
    assert stats["preregistered"] == {"total": 2, "registered": 1, "pending": 1}
