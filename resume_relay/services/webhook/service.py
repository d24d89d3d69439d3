from __future__ import annotations

import asyncio
import logging

from resume_relay.core.config import settings
from resume_relay.models.webhook.result import ScrapeResult
from resume_relay.models.webhook.schemas import UploadReference
from resume_relay.repositories.sheets.repository import ResultsRepository
from resume_relay.services.webhook.report import (
    detail_records,
    detail_sheet_title,
    summary_record,
)
from resume_relay.workers.browser import BrowserSession
from resume_relay.workers.fetcher import download_file

logger = logging.getLogger(__name__)


class AnalysisTimeoutError(Exception):
    """Raised when a run exceeds the configured execution cap."""


class ResumeAnalysisService:
    """Business logic for parsing an uploaded resume and recording it."""

    def __init__(self, repo: ResultsRepository) -> None:
        self._repo = repo

    async def analyze(self, upload: UploadReference) -> ScrapeResult:
        """Download *upload* and run it through the parser page.

        The browser is only acquired once the file is in hand and is
        released before this returns or raises.

        Raises:
            FetchError: the file could not be downloaded.
            BrowserError: the page could not be driven to a result table.
        """
        content = await download_file(upload.url)
        async with BrowserSession() as session:
            return await session.parse(content, upload)

    async def save_results(self, result: ScrapeResult, upload: UploadReference) -> None:
        """Append the summary row and, for successful runs, a detail tab.

        A failure writing the detail tab is logged and swallowed; a failure
        writing the summary row propagates.
        """
        await self._repo.append_summary(summary_record(result, upload))
        logger.info("Results saved to Google Sheets")

        if not result.success:
            return

        title = detail_sheet_title()
        try:
            await self._repo.write_detail(title, detail_records(result, upload))
        except Exception as exc:
            logger.warning("Could not create detail sheet %s: %s", title, exc)

    async def process(self, upload: UploadReference) -> ScrapeResult:
        """Analyze *upload* within the execution cap, then record the result.

        Spreadsheet errors never fail the run: the scrape result is returned
        to the webhook caller regardless.
        """
        try:
            result = await asyncio.wait_for(
                self.analyze(upload), timeout=settings.max_duration
            )
        except asyncio.TimeoutError as exc:
            raise AnalysisTimeoutError(
                f"Execution exceeded {settings.max_duration:g}s"
            ) from exc

        try:
            await self.save_results(result, upload)
        except Exception as exc:
            logger.error("Google Sheets error: %s", exc)
        return result
