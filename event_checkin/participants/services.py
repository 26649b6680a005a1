from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count

from event_checkin.participants.models import Participant
from event_checkin.preregistration.models import PreRegisteredParticipant
from event_checkin.realtime.events.registrations import publish_participant_created
from event_checkin.realtime.events.registrations import publish_participant_deleted

if TYPE_CHECKING:
    from event_checkin.events.models import Event

logger = logging.getLogger(__name__)


def _clean(value) -> str:
    return str(value).strip() if value is not None else ""


@transaction.atomic
def register_participant(  # noqa: PLR0913
    event: Event,
    *,
    full_name: str,
    email: str,
    area: str,
    national_id: str | None = None,
    participant_type: str = Participant.ParticipantType.PARTICIPANT,
    created_by=None,
) -> Participant:
    """Create a registration and announce it once the transaction commits.

    Raises ValidationError when a required field is blank or the
    participant type is unknown.
    """

    values = {
        "full_name": _clean(full_name),
        "email": _clean(email),
        "area": _clean(area),
    }
    errors = {
        name: ["This field is required."] for name, value in values.items() if not value
    }
    if participant_type not in Participant.ParticipantType.values:
        errors["participant_type"] = [f"Unknown participant type '{participant_type}'."]
    if errors:
        raise ValidationError(errors)

    participant = Participant.objects.create(
        event=event,
        national_id=_clean(national_id) or None,
        participant_type=participant_type,
        created_by=created_by if getattr(created_by, "pk", None) else None,
        **values,
    )
    logger.info(
        "Registered participant %s for event %s", participant.pk, participant.event_id
    )
    publish_participant_created(participant)
    return participant


@transaction.atomic
def delete_participant(participant: Participant) -> None:
    """Remove a registration and announce it once the transaction commits.

    Raises ProtectedError for a registration created by converting a
    pre-registered candidate; the candidate keeps pointing at it.
    """

    event_id, participant_id = participant.event_id, participant.pk
    participant.delete()
    logger.info("Deleted participant %s from event %s", participant_id, event_id)
    publish_participant_deleted(event_id, participant_id)


def event_stats(event: Event) -> dict:
    """Head counts for the event dashboard."""
    participants = Participant.objects.filter(event=event)
    by_area = [
        {"area": row["area"], "count": row["count"]}
        for row in participants.values("area")
        .annotate(count=Count("id"))
        .order_by("-count", "area")
    ]
    candidates = PreRegisteredParticipant.objects.filter(event=event)
    total_candidates = candidates.count()
    registered = candidates.filter(converted=True).count()
    return {
        "total": participants.count(),
        "by_area": by_area,
        "preregistered": {
            "total": total_candidates,
            "registered": registered,
            "pending": total_candidates - registered,
        },
    }
