"""Ask the classification oracle which spreadsheet columns hold what.

The oracle only ever sees the header list and the first ``SAMPLE_SIZE`` rows.
Its answer is trusted for nothing: every column it names must be one of the
uploaded headers, otherwise the upload is rejected with ``MappingError``.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from dataclasses import dataclass
from typing import TYPE_CHECKING
from typing import Any

from django.conf import settings

from event_checkin.integrations.llm.client import get_llm_client_from_settings
from event_checkin.integrations.llm.prompts import SYSTEM_PROMPT
from event_checkin.integrations.llm.prompts import build_column_mapping_prompt
from event_checkin.preregistration.exceptions import ClassifierTimeoutError
from event_checkin.preregistration.exceptions import MappingError
from event_checkin.preregistration.models import PreRegisteredParticipant

if TYPE_CHECKING:
    from event_checkin.integrations.llm.client import LLMClient

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 5
DEFAULT_TIMEOUT = 30.0
MAPPED_FIELDS = ("full_name", "email", "national_id", "area")
FIELD_ALIASES = {
    "dni": "national_id",
    "fullName": "full_name",
    "nationalId": "national_id",
}
IDENTIFIER_TYPES = set(PreRegisteredParticipant.IdentifierType.values)
NULL_STRINGS = {"", "null", "none"}


@dataclass(frozen=True)
class RetryPolicy:
    """How often to ask again when the oracle times out or answers nothing.

    The wait before attempt ``n`` (1-based, n > 1) is
    ``backoff_seconds * backoff_factor ** (n - 2)``. All attempts share the
    classifier's overall deadline: each one may take ``attempt_timeout``
    seconds, or by default an even share of the time left for the attempts
    still to come, so a hung call leaves room to ask again.
    """

    attempts: int = 1
    backoff_seconds: float = 0.0
    backoff_factor: float = 2.0
    attempt_timeout: float | None = None

    def delay_before(self, attempt: int) -> float:
        if attempt <= 1 or self.backoff_seconds <= 0:
            return 0.0
        return self.backoff_seconds * self.backoff_factor ** (attempt - 2)

    def attempt_budget(self, attempt: int, remaining: float) -> float:
        if self.attempt_timeout is not None:
            return max(0.0, min(self.attempt_timeout, remaining))
        return remaining / max(1, self.attempts - attempt + 1)


@dataclass(frozen=True)
class ColumnMapping:
    identifier_type: str
    identifier_column: str
    full_name: str | None = None
    email: str | None = None
    national_id: str | None = None
    area: str | None = None

    @property
    def mappings(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in MAPPED_FIELDS}

    @property
    def columns_mapped(self) -> int:
        return sum(1 for column in self.mappings.values() if column)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def value_for(self, row: dict[str, Any], name: str) -> str | None:
        """Cell of ``row`` for a mapped field, as a stripped string or None."""
        column = self.identifier_column if name == "identifier" else getattr(self, name)
        if not column:
            return None
        value = row.get(column)
        if value is None:
            return None
        text = str(value).strip()
        return text or None


def _as_column(value: Any, headers: list[str], label: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"The column chosen for '{label}' is not a header name."
        raise MappingError(msg)
    if value in headers:
        return value
    if value.strip() in headers:
        return value.strip()
    if value.strip().lower() in NULL_STRINGS:
        return None
    msg = f"The column '{value}' chosen for '{label}' does not exist in the file."
    raise MappingError(msg)


def validate_mapping(data: Any, headers: list[str]) -> ColumnMapping:
    """Check the oracle's answer against the real headers."""
    if not isinstance(data, dict):
        msg = "The column analysis returned an unreadable answer."
        raise MappingError(msg)

    identifier_type = data.get("identifier_type")
    if isinstance(identifier_type, str):
        identifier_type = identifier_type.strip().lower()
        identifier_type = "dni" if identifier_type == "national_id" else identifier_type
    if identifier_type not in IDENTIFIER_TYPES:
        msg = f"Unknown identifier type '{data.get('identifier_type')}'."
        raise MappingError(msg)

    identifier_column = _as_column(
        data.get("identifier_column"), headers, "identifier_column"
    )
    if identifier_column is None:
        msg = "The column analysis did not choose an identifier column."
        raise MappingError(msg)

    mappings = data.get("mappings")
    if mappings is None:
        mappings = {}
    if not isinstance(mappings, dict):
        msg = "The column analysis returned malformed mappings."
        raise MappingError(msg)

    fields: dict[str, str | None] = {}
    for key, value in mappings.items():
        name = FIELD_ALIASES.get(key, key)
        if name not in MAPPED_FIELDS:
            continue
        column = _as_column(value, headers, name)
        if column is not None or name not in fields:
            fields[name] = column

    return ColumnMapping(
        identifier_type=identifier_type,
        identifier_column=identifier_column,
        **fields,
    )


def _attempt(client: LLMClient, prompt: str, timeout: float) -> Any | None:
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="classifier")
    try:
        future = executor.submit(client.generate_json, prompt, SYSTEM_PROMPT)
        return future.result(timeout=timeout)
    finally:
        # Never wait for a hung provider call here.
        executor.shutdown(wait=False, cancel_futures=True)


def _ask(
    client: LLMClient, prompt: str, deadline: float, retry: RetryPolicy
) -> Any | None:
    attempts = max(1, retry.attempts)
    data = None
    for attempt in range(1, attempts + 1):
        delay = retry.delay_before(attempt)
        if delay:
            time.sleep(min(delay, max(0.0, deadline - time.monotonic())))
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError
        try:
            data = _attempt(client, prompt, retry.attempt_budget(attempt, remaining))
        except TimeoutError:
            if attempt >= attempts:
                raise
            logger.warning("Column analysis attempt %s timed out", attempt)
            continue
        if data is not None:
            return data
        logger.warning("Column analysis attempt %s returned nothing", attempt)
    return data


def classify_columns(
    headers: list[str],
    rows: list[dict[str, Any]],
    *,
    client: LLMClient | None = None,
    timeout: float | None = None,
    retry: RetryPolicy | None = None,
) -> ColumnMapping:
    """Map the uploaded columns onto the attendee fields.

    Raises MappingError for an invalid answer, ClassifierTimeoutError when the
    oracle does not answer in time and LLMNotConfiguredError when no oracle is
    configured.
    """
    if not headers:
        msg = "The file has no columns to analyze."
        raise MappingError(msg)
    if client is None:
        client = get_llm_client_from_settings()
    if timeout is None:
        timeout = float(
            getattr(settings, "PREREGISTRATION_CLASSIFIER_TIMEOUT", DEFAULT_TIMEOUT)
        )
    retry = retry or RetryPolicy()

    prompt = build_column_mapping_prompt(list(headers), list(rows[:SAMPLE_SIZE]))
    started = time.monotonic()
    try:
        data = _ask(client, prompt, started + timeout, retry)
    except TimeoutError as exc:
        msg = f"Column analysis did not answer within {timeout:g} seconds."
        raise ClassifierTimeoutError(msg) from exc

    mapping = validate_mapping(data, list(headers))
    logger.info(
        "Columns classified in %.2fs: identifier %s (%s), %s fields mapped",
        time.monotonic() - started,
        mapping.identifier_column,
        mapping.identifier_type,
        mapping.columns_mapped,
    )
    return mapping
