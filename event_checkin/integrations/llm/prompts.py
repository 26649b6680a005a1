from __future__ import annotations

import json
from typing import Any

SYSTEM_PROMPT = (
    "You map spreadsheet columns onto an event attendee schema. "
    "Answer with JSON only."
)


def build_column_mapping_prompt(
    headers: list[str], sample_rows: list[dict[str, Any]]
) -> str:
    """Build the prompt asking the model which columns hold which fields.

    The model picks one identifier column, with priority national id (DNI,
    cedula, document) over email over name, and maps the schema fields onto
    exact header names. Fields without a matching column are null.
    """

    headers_str = json.dumps(headers, ensure_ascii=False)
    rows_str = json.dumps(sample_rows, ensure_ascii=False, indent=2, default=str)

    guidance = (
        "Analyze the columns of this spreadsheet of event attendees and map "
        "them onto the fields below.\n\n"
        "Fields:\n"
        "- full_name: the person's full name.\n"
        "- email: the email address.\n"
        "- dni: national identity document number (DNI, cedula, ID, document).\n"
        "- area: department, area, team or company.\n\n"
        "Identifier rules:\n"
        "- Pick exactly one identifier column. Priority: dni, then email, "
        "then full_name.\n"
        "- identifier_type is one of 'dni', 'email', 'name'.\n"
        "- identifier_column must be one of the headers, spelled exactly.\n\n"
        "Output requirements:\n"
        "- Every mapping value is an exact header from the list, or null.\n"
        "- Do not invent headers. Output ONLY JSON, no markdown.\n"
    )

    shape = (
        '{"identifier_type": "dni|email|name", '
        '"identifier_column": "<header>", '
        '"mappings": {"full_name": "<header>|null", "email": "<header>|null", '
        '"dni": "<header>|null", "area": "<header>|null"}}'
    )

    return (
        f"{guidance}\n"
        f"Headers: {headers_str}\n\n"
        f"Sample rows:\n{rows_str}\n\n"
        f"Return JSON with this shape:\n{shape}"
    )
