"""Global Socket.IO server for check-in screens.

Frontend convention:
- Socket.IO path: /ws/realtime/
- Auth: `query.token` (JWT access token), `auth.token` as fallback
- Optional `query.event_id` joins that event's room on connect; clients can
  also switch rooms with the `subscribe` / `unsubscribe` events.

Each event has one room. Changes published through the broadcaster are
relayed here and emitted with the change type as the Socket.IO event name and
the `{type, eventId, payload}` message as data.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any
from urllib.parse import parse_qs

import socketio
from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

from event_checkin.events.models import Event

if TYPE_CHECKING:
    from event_checkin.realtime.broadcaster import ChangeEvent

logger = logging.getLogger(__name__)


sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*",
    logger=False,
    engineio_logger=False,
)


def room_for_event(event_id: int) -> str:
    return f"event_{int(event_id)}"


@database_sync_to_async
def _get_user_id_from_access_token(token: str) -> int:
    jwt_auth = JWTAuthentication()
    validated = jwt_auth.get_validated_token(token)
    user = jwt_auth.get_user(validated)
    return int(user.id)


@database_sync_to_async
def _event_is_active(event_id: int) -> bool:
    return Event.objects.active().filter(pk=event_id).exists()


def _query_params(environ: dict[str, Any]) -> dict[str, list[str]]:
    """Parse the query string out of python-socketio's environ.

    Handles environ shapes across ASGI/WSGI servers.
    """

    scope: Any = environ
    if isinstance(environ, dict) and "asgi.scope" in environ:
        inner = environ.get("asgi.scope")
        if isinstance(inner, dict):
            scope = inner

    query_string: str | bytes = ""
    if isinstance(scope, dict) and "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif isinstance(scope, dict) and "QUERY_STRING" in scope:
        query_string = scope.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")
    return parse_qs(str(query_string))


def _extract_token(environ: dict[str, Any], auth: Any | None) -> str | None:
    token = _query_params(environ).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    # Allow `auth: { token }` as fallback.
    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    return None


def _coerce_event_id(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


async def _authenticate(token: str | None) -> int:
    """Resolve the JWT to a user id or refuse the handshake with a reason."""
    if not token:
        reason = "unauthorized"
        raise ConnectionRefusedError(reason)
    try:
        return await _get_user_id_from_access_token(token)
    except TokenError as exc:
        expired = "expired" in str(exc).lower()
        reason = "jwt_expired" if expired else "unauthorized"
        raise ConnectionRefusedError(reason) from exc
    except AuthenticationFailed as exc:  # unknown or inactive user
        reason = "unauthorized"
        raise ConnectionRefusedError(reason) from exc
    except Exception as exc:
        logger.exception("Socket.IO handshake failed")
        reason = "server_error"
        raise ConnectionRefusedError(reason) from exc


@sio.event
async def connect(sid: str, environ: dict[str, Any], auth: Any | None = None):
    user_id = await _authenticate(_extract_token(environ, auth))
    await sio.save_session(sid, {"user_id": user_id, "event_ids": []})

    event_id = _coerce_event_id(_query_params(environ).get("event_id", [None])[0])
    if event_id is not None:
        await _join_event(sid, event_id)


async def _join_event(sid: str, event_id: int) -> bool:
    if not await _event_is_active(event_id):
        return False
    await sio.enter_room(sid, room_for_event(event_id))
    session = await sio.get_session(sid)
    event_ids = list(session.get("event_ids") or [])
    if event_id not in event_ids:
        event_ids.append(event_id)
    session["event_ids"] = event_ids
    await sio.save_session(sid, session)
    return True


@sio.event
async def subscribe(sid: str, data: Any):
    """Join an event room: `{"eventId": <id>}`; acks `{"ok": bool}`."""

    event_id = _coerce_event_id(data.get("eventId") if isinstance(data, dict) else None)
    if event_id is None:
        return {"ok": False, "error": "invalid_event"}
    if not await _join_event(sid, event_id):
        return {"ok": False, "error": "event_not_found"}
    return {"ok": True, "eventId": event_id}


@sio.event
async def unsubscribe(sid: str, data: Any):
    event_id = _coerce_event_id(data.get("eventId") if isinstance(data, dict) else None)
    if event_id is None:
        return {"ok": False, "error": "invalid_event"}
    await sio.leave_room(sid, room_for_event(event_id))
    return {"ok": True, "eventId": event_id}


@sio.event
async def disconnect(sid: str):
    # Rooms/session are cleaned up automatically.
    _ = sid


def emit_event_to_room(room: str, event: str, payload: dict[str, Any]) -> None:
    """Emit an event to a room from sync Django code."""

    async_to_sync(sio.emit)(event, payload, room=room)


def relay_to_socketio(change: ChangeEvent) -> None:
    """Broadcaster relay: forward a change to its event room."""

    room = room_for_event(change.event_id)
    emit_event_to_room(room, change.type, change.as_message())
