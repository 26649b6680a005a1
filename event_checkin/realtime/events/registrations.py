from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from django.db import transaction

from event_checkin.realtime.broadcaster import ChangeEvent
from event_checkin.realtime.broadcaster import TransportError
from event_checkin.realtime.broadcaster import get_broadcaster

if TYPE_CHECKING:  # import for type checking only
    from event_checkin.participants.models import Participant
    from event_checkin.preregistration.models import PreRegisteredParticipant

logger = logging.getLogger(__name__)

PARTICIPANT_CREATED = "participant.created"
PARTICIPANT_DELETED = "participant.deleted"
CANDIDATES_REPLACED = "preregistration.replaced"
CANDIDATES_CLEARED = "preregistration.cleared"
CANDIDATE_CONVERTED = "preregistration.converted"


def build_participant_payload(participant: Participant) -> dict[str, Any]:
    created_at = participant.created_at
    return {
        "id": participant.id,
        "full_name": participant.full_name,
        "email": participant.email,
        "area": participant.area,
        "national_id": participant.national_id,
        "participant_type": participant.participant_type,
        "created_at": created_at.isoformat() if created_at else None,
        "created_by": participant.created_by_id,
    }


def build_candidate_payload(candidate: PreRegisteredParticipant) -> dict[str, Any]:
    return {
        "id": candidate.id,
        "identifier_type": candidate.identifier_type,
        "identifier_value": candidate.identifier_value,
        "full_name": candidate.full_name,
        "converted": candidate.converted,
        "converted_registration": candidate.converted_registration_id,
    }


def publish_on_commit(change: ChangeEvent) -> None:
    """Publish ``change`` once the surrounding transaction has committed.

    Outside a transaction Django runs the callback immediately. A rolled back
    transaction drops it, so nothing is announced speculatively. The write has
    already committed when the callback runs, so delivery problems are logged
    and never raised to the caller.
    """

    transaction.on_commit(lambda: deliver_change(change))


def deliver_change(change: ChangeEvent) -> None:
    try:
        get_broadcaster().publish(change)
    except Exception as exc:  # noqa: BLE001
        error = TransportError(f"publishing {change.type} failed")
        error.__cause__ = exc
        logger.warning(
            "Realtime delivery degraded for event %s: %s (%s)",
            change.event_id,
            error,
            exc,
        )


def publish_participant_created(participant: Participant) -> None:
    publish_on_commit(
        ChangeEvent(
            type=PARTICIPANT_CREATED,
            event_id=participant.event_id,
            payload=build_participant_payload(participant),
        )
    )


def publish_participant_deleted(event_id: int, participant_id: int) -> None:
    publish_on_commit(
        ChangeEvent(
            type=PARTICIPANT_DELETED,
            event_id=int(event_id),
            payload={"id": int(participant_id)},
        )
    )


def publish_candidate_converted(
    candidate: PreRegisteredParticipant, participant: Participant
) -> None:
    payload = build_candidate_payload(candidate)
    payload["participant"] = build_participant_payload(participant)
    publish_on_commit(
        ChangeEvent(
            type=CANDIDATE_CONVERTED,
            event_id=candidate.event_id,
            payload=payload,
        )
    )


def publish_candidates_replaced(
    event_id: int, count: int, analysis: dict[str, Any] | None = None
) -> None:
    publish_on_commit(
        ChangeEvent(
            type=CANDIDATES_REPLACED,
            event_id=int(event_id),
            payload={"count": count, "analysis": analysis or {}},
        )
    )


def publish_candidates_cleared(event_id: int, count: int) -> None:
    publish_on_commit(
        ChangeEvent(
            type=CANDIDATES_CLEARED,
            event_id=int(event_id),
            payload={"count": count},
        )
    )
