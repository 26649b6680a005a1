from django.urls import path

from event_checkin.participants.api.views import EventParticipantViewSet
from event_checkin.participants.api.views import EventStatsView
from event_checkin.preregistration.api.views import EventPreRegistrationViewSet
from event_checkin.realtime.views import EventStreamView

app_name = "api"

# Everything is scoped to one event, so the routes are wired by hand.
participant_list = EventParticipantViewSet.as_view({"get": "list", "post": "create"})
participant_detail = EventParticipantViewSet.as_view({"delete": "destroy"})
preregistration_list = EventPreRegistrationViewSet.as_view(
    {"get": "list", "post": "upload", "delete": "clear"}
)
preregistration_search = EventPreRegistrationViewSet.as_view({"get": "search"})
preregistration_convert = EventPreRegistrationViewSet.as_view({"post": "convert"})

urlpatterns = [
    path(
        "events/<int:event_id>/participants/",
        participant_list,
        name="event-participant-list",
    ),
    path(
        "events/<int:event_id>/participants/<int:pk>/",
        participant_detail,
        name="event-participant-detail",
    ),
    path(
        "events/<int:event_id>/stats/",
        EventStatsView.as_view(),
        name="event-stats",
    ),
    path(
        "events/<int:event_id>/stream/",
        EventStreamView.as_view(),
        name="event-stream",
    ),
    path(
        "events/<int:event_id>/preregistrations/",
        preregistration_list,
        name="event-preregistration-list",
    ),
    path(
        "events/<int:event_id>/preregistrations/search/",
        preregistration_search,
        name="event-preregistration-search",
    ),
    path(
        "events/<int:event_id>/preregistrations/<int:pk>/convert/",
        preregistration_convert,
        name="event-preregistration-convert",
    ),
]
