import pytest

from event_checkin.participants.models import Participant
from event_checkin.preregistration.exceptions import AlreadyConvertedError
from event_checkin.preregistration.exceptions import CandidateNotFoundError
from event_checkin.preregistration.models import PreRegisteredParticipant
from event_checkin.preregistration.services import store


def candidate(identifier, **extra):
    data = {"identifier_type": "dni", "identifier_value": identifier}
    data.update(extra)
    return data


def registration(event, name="Walk In"):
    return Participant.objects.create(
        event=event, full_name=name, email="walkin@example.com", area="Ops"
    )


@pytest.mark.django_db
class TestReplaceAll:
    def test_list_returns_exactly_the_replaced_set(self, event):
        store.replace_all(
            event.pk,
            [candidate("1", full_name="Bea"), candidate("2", full_name="Ada")],
        )
        listed = store.list_candidates(event.pk)
        assert [c.identifier_value for c in listed] == ["2", "1"]

    def test_second_replace_discards_previous_set(self, event):
        store.replace_all(event.pk, [candidate("1"), candidate("2")])
        store.replace_all(event.pk, [candidate("3")])
        assert [c.identifier_value for c in store.list_candidates(event.pk)] == ["3"]

    def test_replace_drops_converted_candidates_but_not_registrations(self, event):
        (first,) = store.replace_all(event.pk, [candidate("1")])
        person = registration(event)
        store.mark_converted(event.pk, first.pk, person.pk)

        store.replace_all(event.pk, [candidate("2")])

        assert Participant.objects.filter(pk=person.pk).exists()
        assert [c.identifier_value for c in store.list_candidates(event.pk)] == ["2"]

    def test_other_events_are_untouched(self, event, other_event):
        store.replace_all(other_event.pk, [candidate("keep")])
        store.replace_all(event.pk, [candidate("1")])
        store.replace_all(event.pk, [])
        assert store.list_candidates(event.pk).count() == 0
        assert [c.identifier_value for c in store.list_candidates(other_event.pk)] == [
            "keep"
        ]

    def test_invalid_candidate_leaves_current_set(self, event):
        store.replace_all(event.pk, [candidate("1")])
        with pytest.raises(ValueError, match="identifier"):
            store.replace_all(event.pk, [candidate("2"), candidate("   ")])
        assert [c.identifier_value for c in store.list_candidates(event.pk)] == ["1"]

    def test_unknown_identifier_type_is_rejected(self, event):
        with pytest.raises(ValueError, match="identifier type"):
            store.replace_all(
                event.pk,
                [{"identifier_type": "passport", "identifier_value": "X1"}],
            )

    def test_raw_row_keeps_column_order(self, event):
        row = {"Zona": "Norte", "Apellido": "Ruiz", "Cedula": "77"}
        store.replace_all(
            event.pk,
            [candidate("77", raw_data=PreRegisteredParticipant.pack_row(row))],
        )
        stored = PreRegisteredParticipant.objects.get(event=event)
        assert list(stored.raw_row) == ["Zona", "Apellido", "Cedula"]
        assert stored.raw_row == row


@pytest.mark.django_db
class TestSearch:
    @pytest.fixture(autouse=True)
    def _candidates(self, event):
        store.replace_all(
            event.pk,
            [
                candidate("30111222", full_name="Carla Mendez", email="carla@acme.io"),
                candidate("30999888", full_name="carlos ortiz", national_id="30999888"),
                candidate("CARL-7"),
                candidate("40111000", full_name="Diana Carlsen", email="d@x.org"),
                candidate("50111000", full_name="", email="carl@hidden.net"),
            ],
        )

    def test_case_insensitive_substring_across_fields(self, event):
        results = store.search(event.pk, "CARL")
        assert {c.identifier_value for c in results} == {
            "30111222",
            "30999888",
            "CARL-7",
            "40111000",
            "50111000",
        }

    def test_matches_email_and_national_id(self, event):
        assert [c.identifier_value for c in store.search(event.pk, "acme")] == [
            "30111222"
        ]
        assert [c.identifier_value for c in store.search(event.pk, "999")] == [
            "30999888"
        ]

    def test_ordered_by_name_with_unnamed_last(self, event):
        names = [c.full_name for c in store.search(event.pk, "carl")]
        assert names[:3] == ["Carla Mendez", "carlos ortiz", "Diana Carlsen"]
        assert set(names[3:]) == {None, ""}

    def test_converted_candidates_are_hidden_by_default(self, event):
        target = PreRegisteredParticipant.objects.get(identifier_value="30111222")
        store.mark_converted(event.pk, target.pk, registration(event).pk)

        default = {c.identifier_value for c in store.search(event.pk, "carla")}
        everyone = {
            c.identifier_value
            for c in store.search(event.pk, "carla", only_unconverted=False)
        }
        assert "30111222" not in default
        assert "30111222" in everyone

    def test_results_are_capped(self, event):
        store.replace_all(
            event.pk,
            [candidate(f"ID{i:03d}", full_name=f"Guest {i:03d}") for i in range(60)],
        )
        results = store.search(event.pk, "guest")
        assert len(results) == store.SEARCH_LIMIT
        assert results[0].full_name == "Guest 000"

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_blank_query_is_rejected(self, event, query):
        with pytest.raises(ValueError, match="blank"):
            store.search(event.pk, query)

    def test_scoped_to_event(self, event, other_event):
        store.replace_all(other_event.pk, [candidate("X", full_name="Carl Other")])
        assert "X" not in {c.identifier_value for c in store.search(event.pk, "carl")}


@pytest.mark.django_db
class TestMarkConverted:
    def test_first_mark_wins(self, event):
        (pending,) = store.replace_all(event.pk, [candidate("1")])
        first = registration(event, "First")
        second = registration(event, "Second")

        store.mark_converted(event.pk, pending.pk, first.pk)
        with pytest.raises(AlreadyConvertedError):
            store.mark_converted(event.pk, pending.pk, second.pk)

        pending.refresh_from_db()
        assert pending.converted is True
        assert pending.converted_registration_id == first.pk
        assert pending.converted_at is not None

    def test_unknown_candidate(self, event):
        with pytest.raises(CandidateNotFoundError):
            store.mark_converted(event.pk, 987654, 1)

    def test_candidate_of_another_event(self, event, other_event):
        (foreign,) = store.replace_all(other_event.pk, [candidate("1")])
        with pytest.raises(CandidateNotFoundError):
            store.mark_converted(event.pk, foreign.pk, registration(event).pk)


@pytest.mark.django_db
def test_clear_removes_every_candidate(event):
    store.replace_all(event.pk, [candidate("1"), candidate("2")])
    assert store.clear(event.pk) == 2
    assert store.list_candidates(event.pk).count() == 0
