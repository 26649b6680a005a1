from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import transaction

from event_checkin.participants.services import register_participant
from event_checkin.preregistration.exceptions import AlreadyConvertedError
from event_checkin.preregistration.services import store
from event_checkin.realtime.events.registrations import publish_candidate_converted

if TYPE_CHECKING:
    from event_checkin.participants.models import Participant
    from event_checkin.preregistration.models import PreRegisteredParticipant

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = "temp.com"
DEFAULT_AREA = "Not specified"


def registration_values(
    candidate: PreRegisteredParticipant, area_override: str | None = None
) -> dict[str, str | None]:
    """Registration fields for a candidate, with placeholders for gaps."""
    identifier = candidate.identifier_value
    area = (area_override or "").strip()
    return {
        "full_name": candidate.full_name or identifier,
        "email": candidate.email or f"{identifier}@{PLACEHOLDER_EMAIL_DOMAIN}",
        "area": area or candidate.area or DEFAULT_AREA,
        "national_id": candidate.national_id or None,
    }


def convert(
    event_id: int,
    candidate_id: int,
    *,
    area_override: str | None = None,
    actor=None,
) -> Participant:
    """Register a pre-registered candidate, at most once.

    The registration and the converted flag commit together. When another
    request converts the candidate first, the conditional update in
    ``store.mark_converted`` matches nothing, the transaction rolls back
    (dropping the registration created here) and AlreadyConvertedError is
    raised.
    """
    with transaction.atomic():
        candidate = store.get_candidate(event_id, candidate_id)
        if candidate.converted:
            raise AlreadyConvertedError

        participant = register_participant(
            candidate.event,
            created_by=actor,
            **registration_values(candidate, area_override),
        )
        store.mark_converted(event_id, candidate.pk, participant.pk)

        candidate.refresh_from_db(
            fields=["converted", "converted_registration", "converted_at"]
        )
        publish_candidate_converted(candidate, participant)

    logger.info(
        "Converted candidate %s of event %s into participant %s",
        candidate.pk,
        event_id,
        participant.pk,
    )
    return participant
