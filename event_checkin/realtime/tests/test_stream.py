import asyncio
import json
from http import HTTPStatus

import pytest
from django.http import StreamingHttpResponse
from django.test import AsyncRequestFactory
from rest_framework.test import force_authenticate

from event_checkin.realtime.broadcaster import ChangeEvent
from event_checkin.realtime.views import KEEPALIVE_FRAME
from event_checkin.realtime.views import EventStreamView
from event_checkin.realtime.views import astream_events
from event_checkin.realtime.views import stream_events


def decode(frame):
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    return json.loads(frame[len("data: ") :])


class TestStreamEvents:
    def test_subscribes_lazily(self, broadcaster):
        frames = stream_events(broadcaster, 1, keepalive=0.01)
        assert broadcaster.subscriber_count(1) == 0
        assert decode(next(frames)) == {
            "type": "connected",
            "eventId": 1,
            "payload": {},
        }
        assert broadcaster.subscriber_count(1) == 1
        frames.close()
        assert broadcaster.subscriber_count(1) == 0

    def test_keepalive_then_message(self, broadcaster):
        frames = stream_events(broadcaster, 1, keepalive=0.01)
        next(frames)
        assert next(frames) == KEEPALIVE_FRAME
        broadcaster.publish(
            ChangeEvent(type="participant.created", event_id=1, payload={"id": 3})
        )
        assert decode(next(frames)) == {
            "type": "participant.created",
            "eventId": 1,
            "payload": {"id": 3},
        }
        frames.close()

    def test_ends_when_subscription_closes(self, broadcaster):
        frames = stream_events(broadcaster, 1, keepalive=0.01)
        next(frames)
        for sub in list(broadcaster._subscriptions[1]):
            sub.close()
        assert list(frames) == []

class TestAsyncStreamEvents:
    def test_streams_through_asgi_response(self, broadcaster):
        change = ChangeEvent(type="participant.created", event_id=1, payload={"id": 3})

        async def read():
            source = astream_events(broadcaster, 1, keepalive=5.0)
            response = StreamingHttpResponse(source, content_type="text/event-stream")
            assert response.is_async
            chunks = response.__aiter__()
            first = await asyncio.wait_for(chunks.__anext__(), 1.0)
            pending = asyncio.ensure_future(chunks.__anext__())
            await asyncio.sleep(0.05)
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, broadcaster.publish, change)
            second = await asyncio.wait_for(pending, 1.0)
            await chunks.aclose()
            await source.aclose()
            return first, second

        first, second = asyncio.run(read())
        assert decode(first.decode())["type"] == "connected"
        assert decode(second.decode()) == change.as_message()
        assert broadcaster.subscriber_count(1) == 0

    def test_keepalive_while_idle(self, broadcaster):
        async def read():
            frames = astream_events(broadcaster, 1, keepalive=0.01)
            collected = [await frames.__anext__(), await frames.__anext__()]
            await frames.aclose()
            return collected

        connected, keepalive = asyncio.run(read())
        assert decode(connected)["eventId"] == 1
        assert keepalive == KEEPALIVE_FRAME
        assert broadcaster.subscriber_count(1) == 0

    def test_ends_when_subscription_closes(self, broadcaster):
        async def read():
            frames = astream_events(broadcaster, 1, keepalive=5.0)
            await frames.__anext__()
            waiting = asyncio.ensure_future(frames.__anext__())
            await asyncio.sleep(0.05)
            for sub in list(broadcaster._subscriptions[1]):
                sub.close()
            with pytest.raises(StopAsyncIteration):
                await asyncio.wait_for(waiting, 1.0)

        asyncio.run(read())
        assert broadcaster.subscriber_count(1) == 0


@pytest.mark.django_db
class TestEventStreamView:
    def url(self, event_id):
        return f"/api/v1/events/{event_id}/stream/"

    def test_streams_event_changes(self, api_client, event, broadcaster):
        res = api_client.get(self.url(event.pk))
        assert res.status_code == HTTPStatus.OK
        assert res["Content-Type"] == "text/event-stream"
        assert res["Cache-Control"] == "no-cache"
        assert not res.is_async

        content = iter(res.streaming_content)
        first = next(content).decode()
        assert decode(first)["type"] == "connected"
        assert broadcaster.subscriber_count(event.pk) == 1

        broadcaster.publish(
            ChangeEvent(type="preregistration.cleared", event_id=event.pk)
        )
        frame = next(content).decode()
        while frame == KEEPALIVE_FRAME:
            frame = next(content).decode()
        assert decode(frame)["type"] == "preregistration.cleared"

    def test_unknown_event(self, api_client):
        res = api_client.get(self.url(999999))
        assert res.status_code == HTTPStatus.NOT_FOUND

    def test_requires_authentication(self, client, event):
        res = client.get(self.url(event.pk))
        assert res.status_code == HTTPStatus.UNAUTHORIZED


@pytest.mark.django_db
def test_asgi_request_gets_async_stream(user, event, broadcaster):
    request = AsyncRequestFactory().get(f"/api/v1/events/{event.pk}/stream/")
    force_authenticate(request, user=user)
    response = EventStreamView.as_view()(request, event_id=event.pk)
    assert response.status_code == HTTPStatus.OK
    assert response.is_async

    async def read():
        chunks = response.__aiter__()
        first = await asyncio.wait_for(chunks.__anext__(), 1.0)
        for sub in list(broadcaster._subscriptions[event.pk]):
            sub.close()
        rest = [chunk async for chunk in chunks]
        return first, rest

    first, rest = asyncio.run(read())
    assert decode(first.decode())["type"] == "connected"
    assert rest == []
    assert broadcaster.subscriber_count(event.pk) == 0
