"""Views for the pre-registration candidates of an event."""

import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser
from rest_framework.parsers import JSONParser
from rest_framework.parsers import MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from event_checkin.audit.utils import log_action
from event_checkin.events.models import get_active_event_or_404
from event_checkin.integrations.llm.client import LLMNotConfiguredError
from event_checkin.participants.api.serializers import ParticipantSerializer
from event_checkin.preregistration.exceptions import PayloadTooLargeError
from event_checkin.preregistration.exceptions import PreRegistrationError
from event_checkin.preregistration.models import PreRegisteredParticipant
from event_checkin.preregistration.services import reconciliation
from event_checkin.preregistration.services import store
from event_checkin.preregistration.services.ingestion import max_upload_bytes
from event_checkin.preregistration.services.pipeline import import_candidates
from event_checkin.realtime.events.registrations import publish_candidates_cleared

from .permissions import IsEventAdmin
from .serializers import ClearResultSerializer
from .serializers import ConvertResultSerializer
from .serializers import ConvertSerializer
from .serializers import ErrorSerializer
from .serializers import PreRegisteredParticipantSerializer
from .serializers import UploadResultSerializer
from .serializers import UploadSerializer

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}
ERROR_RESPONSES = {
    400: ErrorSerializer,
    404: ErrorSerializer,
    409: ErrorSerializer,
    413: ErrorSerializer,
    415: ErrorSerializer,
    422: ErrorSerializer,
    503: ErrorSerializer,
    504: ErrorSerializer,
}


class EventPreRegistrationViewSet(viewsets.GenericViewSet):
    """Candidates of one event: upload a sheet, search, convert, clear."""

    queryset = PreRegisteredParticipant.objects.all()
    serializer_class = PreRegisteredParticipantSerializer
    permission_classes = [IsAuthenticated]
    parser_classes = (JSONParser, MultiPartParser, FormParser)
    filter_backends = []
    pagination_class = None

    def get_permissions(self):
        # Replacing or clearing the whole set is an admin task.
        if getattr(self, "action", None) in {"upload", "clear"}:
            return [IsAuthenticated(), IsEventAdmin()]
        return [perm() for perm in self.permission_classes]

    def get_event(self):
        if not hasattr(self, "_event"):
            self._event = get_active_event_or_404(self.kwargs.get("event_id"))
        return self._event

    def handle_exception(self, exc):
        if isinstance(exc, PreRegistrationError):
            return Response(
                {"detail": exc.detail, "code": exc.code}, status=exc.status_code
            )
        if isinstance(exc, LLMNotConfiguredError):
            logger.error("Column classification unavailable: %s", exc)
            return Response(
                {
                    "detail": "Automatic column analysis is not configured.",
                    "code": "CLASSIFIER_NOT_CONFIGURED",
                },
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return super().handle_exception(exc)

    @extend_schema(
        tags=["Pre-registration"],
        parameters=[
            OpenApiParameter(
                "include_converted",
                OpenApiTypes.BOOL,
                description="Also list candidates already registered.",
            )
        ],
        responses={200: PreRegisteredParticipantSerializer(many=True)},
    )
    def list(self, request, *args, **kwargs):
        event = self.get_event()
        include_converted = (
            str(request.query_params.get("include_converted", "")).lower() in TRUTHY
        )
        qs = store.list_candidates(event.pk, only_unconverted=not include_converted)
        return Response(self.get_serializer(qs, many=True).data)

    @extend_schema(
        tags=["Pre-registration"],
        request={"multipart/form-data": UploadSerializer},
        responses={201: UploadResultSerializer, **ERROR_RESPONSES},
    )
    def upload(self, request, *args, **kwargs):
        event = self.get_event()
        upload = request.FILES.get("file")
        if upload is None:
            return Response(
                {"detail": "Attach the spreadsheet as 'file'.", "code": "NO_FILE"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        logger.info("Pre-registration upload %s (%s bytes)", upload.name, upload.size)
        limit = max_upload_bytes()
        # Refuse oversized files before reading them into memory.
        if upload.size > limit:
            msg = f"The file is larger than the {limit} byte upload limit."
            raise PayloadTooLargeError(msg)
        result = import_candidates(event, upload.read(), upload.name, max_bytes=limit)

        log_action(
            request,
            "preregistration_uploaded",
            event_id=event.pk,
            message=f"Uploaded {result.count} pre-registrations from {upload.name}",
            details={"count": result.count, **result.analysis},
        )
        data = {
            "detail": f"{result.count} pre-registered participants imported.",
            "count": result.count,
            "skipped": result.skipped,
            "analysis": result.analysis,
        }
        return Response(data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Pre-registration"],
        responses={200: ClearResultSerializer},
    )
    def clear(self, request, *args, **kwargs):
        event = self.get_event()
        count = store.clear(event.pk)
        publish_candidates_cleared(event.pk, count)
        log_action(
            request,
            "preregistration_cleared",
            event_id=event.pk,
            message=f"Cleared {count} pre-registrations",
            details={"count": count},
        )
        return Response(
            {"detail": f"{count} pre-registered participants removed.", "count": count}
        )

    @extend_schema(
        tags=["Pre-registration"],
        parameters=[
            OpenApiParameter("q", OpenApiTypes.STR, required=True),
            OpenApiParameter("include_converted", OpenApiTypes.BOOL),
        ],
        responses={
            200: PreRegisteredParticipantSerializer(many=True),
            400: ErrorSerializer,
        },
    )
    @action(detail=False, methods=["get"], url_path="search")
    def search(self, request, *args, **kwargs):
        event = self.get_event()
        include_converted = (
            str(request.query_params.get("include_converted", "")).lower() in TRUTHY
        )
        try:
            results = store.search(
                event.pk,
                request.query_params.get("q", ""),
                only_unconverted=not include_converted,
            )
        except ValueError:
            return Response(
                {"detail": "Type something to search for.", "code": "QUERY_REQUIRED"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response(self.get_serializer(results, many=True).data)

    @extend_schema(
        tags=["Pre-registration"],
        request=ConvertSerializer,
        responses={201: ConvertResultSerializer, **ERROR_RESPONSES},
    )
    @action(detail=True, methods=["post"], url_path="convert")
    def convert(self, request, *args, **kwargs):
        event = self.get_event()
        ser = ConvertSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        participant = reconciliation.convert(
            event.pk,
            kwargs.get("pk"),
            area_override=ser.validated_data.get("area"),
            actor=request.user,
        )
        candidate = participant.preregistration

        log_action(
            request,
            "preregistration_converted",
            event_id=event.pk,
            target=participant,
            message=f"Registered from pre-registration: {participant.full_name}",
            details={"preregistration": candidate.pk},
        )
        data = {
            "detail": f"{participant.full_name} registered.",
            "participant": ParticipantSerializer(participant).data,
            "preregistration": PreRegisteredParticipantSerializer(candidate).data,
        }
        return Response(data, status=status.HTTP_201_CREATED)
