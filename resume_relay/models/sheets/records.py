"""Row schemas for the results spreadsheet.

Column order is the on-sheet order; keep it stable, existing tabs are
appended to positionally.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel

# Hard limit on characters in a single Sheets cell.
CELL_CHAR_LIMIT = 50_000

SUMMARY_SHEET_TITLE = "Resume Analysis Results"

SUMMARY_COLUMNS: list[str] = [
    "Timestamp",
    "Filename",
    "File Size",
    "URL",
    "Status",
    "Total Rows",
    "Total Columns",
    "Raw Data (JSON)",
    "Notes",
]

DETAIL_COLUMNS: list[str] = ["Field", "Data"]

CellValue = Union[str, int]


def _cell(value: Any) -> CellValue:
    if isinstance(value, int):
        return value
    text = "" if value is None else str(value)
    return text[:CELL_CHAR_LIMIT]


class SummaryRecord(BaseModel):
    """One row of the summary tab."""

    timestamp: str
    filename: str
    file_size: str
    url: str
    status: str
    total_rows: int
    total_columns: int
    raw_data: str
    notes: str

    def to_row(self) -> list[CellValue]:
        return [
            _cell(self.timestamp),
            _cell(self.filename),
            _cell(self.file_size),
            _cell(self.url),
            _cell(self.status),
            _cell(self.total_rows),
            _cell(self.total_columns),
            _cell(self.raw_data),
            _cell(self.notes),
        ]


class DetailRecord(BaseModel):
    """One ``Field`` / ``Data`` pair of a detail tab."""

    field: str
    data: CellValue

    def to_row(self) -> list[CellValue]:
        return [_cell(self.field), _cell(self.data)]
