from __future__ import annotations

import logging

from resume_relay.models.sheets.records import (
    DETAIL_COLUMNS,
    SUMMARY_COLUMNS,
    SUMMARY_SHEET_TITLE,
    DetailRecord,
    SummaryRecord,
)
from resume_relay.repositories.base import BaseSheetRepository

logger = logging.getLogger(__name__)


class ResultsRepository(BaseSheetRepository):
    """Append-only store for resume analysis results.

    One summary row per request goes to the shared summary tab; the full
    breakdown of a successful run goes to a tab of its own.
    """

    SHEET_TITLE = SUMMARY_SHEET_TITLE
    HEADER = SUMMARY_COLUMNS

    async def append_summary(self, record: SummaryRecord) -> None:
        await self.ensure_sheet()
        await self.append_rows(self.SHEET_TITLE, [record.to_row()])

    async def write_detail(self, title: str, records: list[DetailRecord]) -> None:
        """Create tab *title* and fill it with *records* in order."""
        await self.add_sheet(title, DETAIL_COLUMNS)
        await self.append_rows(title, [record.to_row() for record in records])
        logger.info("Created detailed analysis sheet: %s", title)
