"""Persistence of the pre-registered candidates of an event.

``replace_all`` swaps the whole candidate set of an event in one transaction
while holding the event row lock, so concurrent uploads for the same event
serialize and readers see either the old or the new set. ``mark_converted``
is a single conditional UPDATE: of two racing conversions exactly one
matches ``converted = false``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from collections.abc import Mapping
from typing import Any

from django.db import transaction
from django.db.models import Case
from django.db.models import IntegerField
from django.db.models import Q
from django.db.models import QuerySet
from django.db.models import Value
from django.db.models import When
from django.db.models.functions import Lower
from django.utils import timezone

from event_checkin.events.models import Event
from event_checkin.preregistration.exceptions import AlreadyConvertedError
from event_checkin.preregistration.exceptions import CandidateNotFoundError
from event_checkin.preregistration.models import PreRegisteredParticipant

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50
IDENTIFIER_TYPES = PreRegisteredParticipant.IdentifierType.values
CANDIDATE_FIELDS = (
    "identifier_type",
    "identifier_value",
    "full_name",
    "email",
    "national_id",
    "area",
    "raw_data",
)


def _build_candidate(event_id: int, data: Any) -> PreRegisteredParticipant:
    if isinstance(data, PreRegisteredParticipant):
        values = {name: getattr(data, name) for name in CANDIDATE_FIELDS}
    elif isinstance(data, Mapping):
        values = {name: data.get(name) for name in CANDIDATE_FIELDS}
    else:
        msg = f"Cannot store {type(data).__name__} as a candidate"
        raise TypeError(msg)

    identifier = str(values.get("identifier_value") or "").strip()
    if not identifier:
        msg = "Every candidate needs a non-empty identifier value"
        raise ValueError(msg)
    if values.get("identifier_type") not in IDENTIFIER_TYPES:
        msg = f"Unknown identifier type {values.get('identifier_type')!r}"
        raise ValueError(msg)
    values["identifier_value"] = identifier
    if values.get("raw_data") is None:
        values["raw_data"] = []
    return PreRegisteredParticipant(event_id=event_id, **values)


def _blank_names_last(qs: QuerySet) -> QuerySet:
    return qs.annotate(
        name_missing=Case(
            When(Q(full_name__isnull=True) | Q(full_name=""), then=Value(1)),
            default=Value(0),
            output_field=IntegerField(),
        )
    )


def replace_all(
    event_id: int, candidates: Iterable[PreRegisteredParticipant | Mapping]
) -> list[PreRegisteredParticipant]:
    """Atomically replace every candidate of the event with ``candidates``.

    Everything is validated before the old set is touched; a ValueError leaves
    the current set in place.
    """
    new_set = [_build_candidate(event_id, item) for item in candidates]
    with transaction.atomic():
        Event.objects.select_for_update().only("pk").get(pk=event_id)
        removed, _ = PreRegisteredParticipant.objects.filter(event_id=event_id).delete()
        created = PreRegisteredParticipant.objects.bulk_create(new_set)
    logger.info(
        "Replaced candidates of event %s: %s removed, %s stored",
        event_id,
        removed,
        len(created),
    )
    return created


def list_candidates(
    event_id: int, *, only_unconverted: bool = False
) -> QuerySet[PreRegisteredParticipant]:
    qs = PreRegisteredParticipant.objects.filter(event_id=event_id)
    if only_unconverted:
        qs = qs.filter(converted=False)
    return _blank_names_last(qs).order_by(
        "converted", "name_missing", Lower("full_name"), "id"
    )


def search(
    event_id: int, query: str, *, only_unconverted: bool = True
) -> list[PreRegisteredParticipant]:
    """Case-insensitive substring match over name, email, national id and
    identifier, best named first, at most ``SEARCH_LIMIT`` results."""
    term = (query or "").strip()
    if not term:
        msg = "Search query must not be blank"
        raise ValueError(msg)

    qs = PreRegisteredParticipant.objects.filter(event_id=event_id).filter(
        Q(full_name__icontains=term)
        | Q(email__icontains=term)
        | Q(national_id__icontains=term)
        | Q(identifier_value__icontains=term)
    )
    if only_unconverted:
        qs = qs.filter(converted=False)
    ordered = _blank_names_last(qs).order_by("name_missing", Lower("full_name"), "id")
    return list(ordered[:SEARCH_LIMIT])


def get_candidate(event_id: int, candidate_id: int) -> PreRegisteredParticipant:
    try:
        return PreRegisteredParticipant.objects.get(pk=candidate_id, event_id=event_id)
    except (PreRegisteredParticipant.DoesNotExist, ValueError, TypeError):
        raise CandidateNotFoundError from None


def mark_converted(event_id: int, candidate_id: int, registration_id: int) -> None:
    """Flip the candidate to converted unless someone already did.

    Raises AlreadyConvertedError when the candidate was converted first by
    another request, CandidateNotFoundError when it does not exist.
    """
    updated = PreRegisteredParticipant.objects.filter(
        pk=candidate_id, event_id=event_id, converted=False
    ).update(
        converted=True,
        converted_registration_id=registration_id,
        converted_at=timezone.now(),
    )
    if updated == 1:
        return
    if PreRegisteredParticipant.objects.filter(
        pk=candidate_id, event_id=event_id
    ).exists():
        raise AlreadyConvertedError
    raise CandidateNotFoundError


def clear(event_id: int) -> int:
    """Delete every candidate of the event; returns how many were removed."""
    with transaction.atomic():
        Event.objects.select_for_update().only("pk").get(pk=event_id)
        removed, _ = PreRegisteredParticipant.objects.filter(event_id=event_id).delete()
    logger.info("Cleared %s candidates of event %s", removed, event_id)
    return removed
