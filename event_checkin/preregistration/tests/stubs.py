from __future__ import annotations

import csv
import io
import time
from typing import Any

import openpyxl

from event_checkin.integrations.llm.client import LLMClient

SPANISH_HEADERS = ["Nombre", "Correo", "Cedula", "Area"]
SPANISH_MAPPING = {
    "identifier_type": "dni",
    "identifier_column": "Cedula",
    "mappings": {
        "full_name": "Nombre",
        "email": "Correo",
        "dni": "Cedula",
        "area": "Area",
    },
}


class StubOracle(LLMClient):
    """Replays canned answers in order; the last one repeats.

    ``delays`` works the same way for the time each call takes.
    """

    def __init__(
        self, *responses: Any, delay: float = 0.0, delays: list[float] | None = None
    ):
        self.responses = list(responses) or [None]
        self.delays = list(delays) if delays else [delay]
        self.prompts: list[str] = []

    def generate_json(self, prompt: str, system: str | None = None) -> Any | None:
        self.prompts.append(prompt)
        pause = self.delays[min(len(self.prompts), len(self.delays)) - 1]
        if pause:
            time.sleep(pause)
        index = min(len(self.prompts), len(self.responses)) - 1
        answer = self.responses[index]
        if isinstance(answer, Exception):
            raise answer
        return answer


def csv_bytes(
    rows: list[list[Any]], *, delimiter: str = ",", encoding: str = "utf-8"
) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue().encode(encoding)


def xlsx_bytes(rows: list[list[Any]]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def spanish_sheet() -> list[list[Any]]:
    return [
        SPANISH_HEADERS,
        ["Ana Pérez", "ana@example.com", "12345678", "Ventas"],
        ["Luis Gómez", "", "87654321", "Soporte"],
        ["", "sin-cedula@example.com", "", "Ventas"],
        ["María Ruiz", "maria@example.com", "11223344", ""],
    ]
