"""Server-Sent Events stream for clients that do not speak Socket.IO."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING
from typing import Any

from django.conf import settings
from django.core.handlers.asgi import ASGIRequest
from django.http import StreamingHttpResponse
from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from event_checkin.events.models import get_active_event_or_404
from event_checkin.realtime.broadcaster import get_broadcaster

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from collections.abc import Iterator

    from event_checkin.realtime.broadcaster import Broadcaster

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ": keep-alive\n\n"


def format_sse(message: dict[str, Any]) -> str:
    return f"data: {json.dumps(message, default=str)}\n\n"


def _keepalive_seconds(keepalive: float | None) -> float:
    if keepalive is None:
        return float(getattr(settings, "REALTIME_STREAM_KEEPALIVE", 15.0))
    return keepalive


def _connected_frame(event_id: int) -> str:
    return format_sse({"type": "connected", "eventId": event_id, "payload": {}})


def _log_dropped(subscription) -> None:
    if subscription.dropped:
        logger.info(
            "Stream for event %s closed after dropping %s messages",
            subscription.event_id,
            subscription.dropped,
        )


def stream_events(
    broadcaster: Broadcaster, event_id: int, *, keepalive: float | None = None
) -> Iterator[str]:
    """Yield SSE frames until the subscription or the client goes away.

    The subscription is opened on first iteration so an unconsumed response
    never leaves a dangling subscriber behind. Served under WSGI, where each
    stream holds its worker thread.
    """

    keepalive = _keepalive_seconds(keepalive)
    subscription = broadcaster.subscribe(event_id)
    try:
        yield _connected_frame(subscription.event_id)
        while not subscription.closed:
            change = subscription.get(timeout=keepalive)
            if change is None:
                yield KEEPALIVE_FRAME
                continue
            yield format_sse(change.as_message())
    finally:
        # Client disconnects surface as GeneratorExit here.
        subscription.close()
        _log_dropped(subscription)


async def astream_events(
    broadcaster: Broadcaster, event_id: int, *, keepalive: float | None = None
) -> AsyncIterator[str]:
    """Async twin of :func:`stream_events` for ASGI servers.

    Django drains a synchronous iterator into a list before sending it under
    ASGI, which never finishes for an endless stream.
    """

    keepalive = _keepalive_seconds(keepalive)
    subscription = broadcaster.subscribe(event_id)
    try:
        yield _connected_frame(subscription.event_id)
        while not subscription.closed:
            change = await subscription.aget(timeout=keepalive)
            if change is None:
                yield KEEPALIVE_FRAME
                continue
            yield format_sse(change.as_message())
    finally:
        # Cancelled on client disconnect.
        subscription.close()
        _log_dropped(subscription)


def is_asgi_request(request) -> bool:
    return isinstance(getattr(request, "_request", request), ASGIRequest)


class EventStreamView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Realtime"], responses={(200, "text/event-stream"): str})
    def get(self, request, event_id=None):
        event = get_active_event_or_404(event_id)
        stream = astream_events if is_asgi_request(request) else stream_events
        response = StreamingHttpResponse(
            stream(get_broadcaster(), event.pk),
            content_type="text/event-stream",
        )
        response["Cache-Control"] = "no-cache"
        response["X-Accel-Buffering"] = "no"
        return response
