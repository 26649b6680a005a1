import pytest
from django.http import Http404

from event_checkin.events.models import Event
from event_checkin.events.models import get_active_event_or_404


@pytest.mark.django_db
class TestEvent:
    def test_soft_delete_hides_event(self, event, other_event):
        event.soft_delete()
        event.refresh_from_db()
        assert event.is_deleted
        assert list(Event.objects.active()) == [other_event]
        assert Event.objects.filter(pk=event.pk).exists()

    def test_get_active_event(self, event):
        assert get_active_event_or_404(event.pk) == event
        assert get_active_event_or_404(str(event.pk)) == event

    @pytest.mark.parametrize("event_id", [999999, "abc", None])
    def test_get_active_event_missing(self, event, event_id):
        with pytest.raises(Http404):
            get_active_event_or_404(event_id)

    def test_get_active_event_deleted(self, event):
        event.soft_delete()
        with pytest.raises(Http404):
            get_active_event_or_404(event.pk)
