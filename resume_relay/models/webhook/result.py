from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TableData(BaseModel):
    """Contents of the rendered result table."""

    html: str = ""
    text: str = ""
    headers: list[str] = []
    rows: list[list[str]] = []


class ScrapeResult(BaseModel):
    """Outcome of a single parser-page run.

    Never stored locally; it is written straight through to the sheet.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    table_data: TableData
    total_rows: int
    total_columns: int
    timestamp: str
    page_title: str = ""
    url: str = ""

    @classmethod
    def from_table(
        cls, table: TableData, *, timestamp: str, page_title: str, url: str
    ) -> ScrapeResult:
        if table.headers:
            total_columns = len(table.headers)
        elif table.rows:
            total_columns = len(table.rows[0])
        else:
            total_columns = 0
        return cls(
            success=True,
            table_data=table,
            total_rows=len(table.rows),
            total_columns=total_columns,
            timestamp=timestamp,
            page_title=page_title,
            url=url,
        )
