from __future__ import annotations

from typing import Any

import redis
from django.conf import settings
from django.db import connection
from django.http import JsonResponse

from event_checkin.realtime.broadcaster import RedisBroadcaster
from event_checkin.realtime.broadcaster import get_broadcaster


def check_db() -> dict[str, Any]:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1;")
            cursor.fetchone()
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    else:
        return {"ok": True}


def check_redis() -> dict[str, Any]:
    backend = str(getattr(settings, "REALTIME_BROADCASTER", "local")).lower()
    required = backend == "redis"
    url = getattr(settings, "REDIS_URL", None)
    if not url:
        error = "REDIS_URL not configured"
        return {"ok": not required, "required": required, "error": error}
    try:
        client = redis.Redis.from_url(
            url,
            socket_timeout=0.5,
            socket_connect_timeout=0.5,
        )
        client.ping()
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": not required, "required": required, "error": str(exc)}
    else:
        return {"ok": True, "required": required}


def check_realtime() -> dict[str, Any]:
    broadcaster = get_broadcaster()
    result = {
        "ok": True,
        "backend": type(broadcaster).__name__,
        "subscribers": broadcaster.subscriber_count(),
    }
    if isinstance(broadcaster, RedisBroadcaster):
        # Without its listener this process misses other workers' changes.
        result["listening"] = broadcaster.listening
        result["ok"] = broadcaster.listening
    return result


def health(request):
    """Report db, redis and broadcaster state.

    Redis only counts against the overall status when the broadcaster relies
    on it.
    """
    components = {
        "db": check_db(),
        "redis": check_redis(),
        "realtime": check_realtime(),
    }

    all_ok = all(v.get("ok", False) for v in components.values())
    some_ok = any(v.get("ok", False) for v in components.values())

    status = "ok" if all_ok else ("degraded" if some_ok else "down")
    http_status = 200 if all_ok else 503

    return JsonResponse(
        {"status": status, "components": components},
        status=http_status,
    )
