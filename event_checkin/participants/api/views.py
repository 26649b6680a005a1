"""Views for the registered participants of an event."""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import ProtectedError
from drf_spectacular.utils import OpenApiExample
from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import extend_schema_view
from rest_framework import mixins
from rest_framework import status
from rest_framework import viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from event_checkin.audit.utils import log_action
from event_checkin.events.models import get_active_event_or_404
from event_checkin.participants.models import Participant
from event_checkin.participants.services import delete_participant
from event_checkin.participants.services import event_stats
from event_checkin.participants.services import register_participant
from event_checkin.preregistration.api.permissions import IsEventAdmin
from event_checkin.preregistration.api.serializers import ErrorSerializer

from .filters import ParticipantFilter
from .serializers import EventStatsSerializer
from .serializers import ParticipantSerializer
from .serializers import QuickAddSerializer

logger = logging.getLogger(__name__)


@extend_schema_view(list=extend_schema(tags=["Participants"]))
class EventParticipantViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Registrations of one event: list with filters, quick-add at the door.

    Deleting a registration is reserved to event admins.
    """

    serializer_class = ParticipantSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = ParticipantFilter

    def get_permissions(self):
        if getattr(self, "action", None) == "destroy":
            return [IsAuthenticated(), IsEventAdmin()]
        return super().get_permissions()

    def get_event(self):
        if not hasattr(self, "_event"):
            self._event = get_active_event_or_404(self.kwargs.get("event_id"))
        return self._event

    def get_queryset(self):
        return Participant.objects.filter(event=self.get_event()).select_related(
            "created_by"
        )

    @extend_schema(
        tags=["Participants"],
        request=QuickAddSerializer,
        responses={201: ParticipantSerializer},
        examples=[
            OpenApiExample(
                name="Quick add",
                value={
                    "full_name": "Ana Perez",
                    "email": "ana@example.com",
                    "area": "Sales",
                    "national_id": "12345678",
                    "participant_type": "attendee",
                },
                request_only=True,
            )
        ],
    )
    def create(self, request, *args, **kwargs):
        event = self.get_event()
        ser = QuickAddSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            participant = register_participant(
                event, created_by=request.user, **ser.validated_data
            )
        except DjangoValidationError as exc:
            raise ValidationError(exc.message_dict) from exc

        log_action(
            request,
            "participant_registered",
            event_id=event.pk,
            target=participant,
            message=f"Participant registered: {participant.full_name}",
        )
        data = ParticipantSerializer(participant, context={"request": request}).data
        return Response(data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Participants"],
        responses={204: None, 404: ErrorSerializer, 409: ErrorSerializer},
    )
    def destroy(self, request, *args, **kwargs):
        participant = self.get_object()
        participant_id, full_name = participant.pk, participant.full_name
        try:
            delete_participant(participant)
        except ProtectedError:
            return Response(
                {
                    "detail": "This registration came from a pre-registration "
                    "and cannot be deleted.",
                    "code": "PARTICIPANT_CONVERTED",
                },
                status=status.HTTP_409_CONFLICT,
            )

        log_action(
            request,
            "participant_deleted",
            event_id=participant.event_id,
            message=f"Participant deleted: {full_name}",
            details={"participant_id": participant_id},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class EventStatsView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Participants"], responses={200: EventStatsSerializer})
    def get(self, request, event_id=None):
        event = get_active_event_or_404(event_id)
        return Response(EventStatsSerializer(event_stats(event)).data)
