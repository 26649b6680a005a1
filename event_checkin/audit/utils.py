from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from .models import AuditLog

if TYPE_CHECKING:
    from django.db import models
    from rest_framework.request import Request

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "") or ""


def log_action(
    request: Request,
    action: str,
    *,
    event_id: int | None,
    target: models.Model | None = None,
    message: str = "",
    details: dict[str, Any] | None = None,
) -> AuditLog:
    """Record ``action`` performed by the request's user on one event.

    ``target`` is the row the action produced or touched; bulk actions leave
    it empty and describe the outcome in ``details``.
    """
    user = getattr(request, "user", None)
    entry = AuditLog.objects.create(
        action=action,
        actor=user if getattr(user, "is_authenticated", False) else None,
        event_id=event_id,
        message=message,
        target_type=type(target).__name__ if target is not None else "",
        target_id=getattr(target, "pk", None),
        details=details,
        ip_address=client_ip(request),
    )
    logger.debug("audit %s event=%s target=%s", action, event_id, entry.target_id)
    return entry
