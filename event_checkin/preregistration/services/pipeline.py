"""Upload flow: parse, classify, then replace the event's candidate set.

Parsing and classification happen before any write, so a rejected upload
leaves the previous candidates untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from typing import Any

from django.db import transaction

from event_checkin.preregistration.exceptions import FormatError
from event_checkin.preregistration.models import PreRegisteredParticipant
from event_checkin.preregistration.services import store
from event_checkin.preregistration.services.classifier import ColumnMapping
from event_checkin.preregistration.services.classifier import RetryPolicy
from event_checkin.preregistration.services.classifier import classify_columns
from event_checkin.preregistration.services.ingestion import parse_upload
from event_checkin.realtime.events.registrations import publish_candidates_replaced

if TYPE_CHECKING:
    from event_checkin.events.models import Event
    from event_checkin.integrations.llm.client import LLMClient

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    count: int
    skipped: int
    mapping: ColumnMapping

    @property
    def analysis(self) -> dict[str, Any]:
        return {
            "identifier_type": self.mapping.identifier_type,
            "identifier_column": self.mapping.identifier_column,
            "columns_mapped": self.mapping.columns_mapped,
            "mappings": self.mapping.mappings,
        }


def build_candidates(
    rows: list[dict[str, Any]], mapping: ColumnMapping
) -> tuple[list[PreRegisteredParticipant], int]:
    """Candidates for rows that carry an identifier, plus the skipped count."""
    candidates = []
    skipped = 0
    for row in rows:
        identifier = mapping.value_for(row, "identifier")
        if identifier is None:
            skipped += 1
            continue
        candidates.append(
            PreRegisteredParticipant(
                identifier_type=mapping.identifier_type,
                identifier_value=identifier,
                full_name=mapping.value_for(row, "full_name"),
                email=mapping.value_for(row, "email"),
                national_id=mapping.value_for(row, "national_id"),
                area=mapping.value_for(row, "area"),
                raw_data=PreRegisteredParticipant.pack_row(row),
            )
        )
    return candidates, skipped


def import_candidates(  # noqa: PLR0913
    event: Event,
    content: bytes,
    filename: str,
    *,
    client: LLMClient | None = None,
    retry: RetryPolicy | None = None,
    max_bytes: int | None = None,
) -> ImportResult:
    parsed = parse_upload(content, filename, max_bytes=max_bytes)
    mapping = classify_columns(parsed.headers, parsed.rows, client=client, retry=retry)
    candidates, skipped = build_candidates(parsed.rows, mapping)
    if not candidates:
        msg = (
            f"No row has a value in the identifier column "
            f"'{mapping.identifier_column}'."
        )
        raise FormatError(msg)

    result = ImportResult(count=len(candidates), skipped=skipped, mapping=mapping)
    with transaction.atomic():
        store.replace_all(event.pk, candidates)
        publish_candidates_replaced(event.pk, result.count, result.analysis)

    if skipped:
        logger.info("Skipped %s rows without identifier in %s", skipped, filename)
    return result
