"""Abstract base class for all spreadsheet repositories.

Every repository in this project extends ``BaseSheetRepository``.  A
repository owns one named tab (``SHEET_TITLE``) with a fixed header row
(``HEADER``) and may create further tabs on demand.

Extending for a new tab:
    1. Declare the column list next to the other row schemas.
    2. Subclass ``BaseSheetRepository`` and set ``SHEET_TITLE`` / ``HEADER``.
    3. Call ``ensure_sheet()`` before the first append.

Example::

    class AuditRepository(BaseSheetRepository):
        SHEET_TITLE = "Audit"
        HEADER = ["Timestamp", "Event"]
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC
from typing import Any, Callable, ClassVar, TypeVar

from googleapiclient.errors import HttpError
from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    retry_if_exception,
    wait_exponential,
)

from resume_relay.core.config import settings
from resume_relay.core.sheets import SheetsManager
from resume_relay.models.sheets.records import CellValue

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="BaseSheetRepository")

_TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})


class SheetsError(RuntimeError):
    """Raised when a Sheets API call fails permanently."""


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, HttpError) and exc.resp.status in _TRANSIENT_STATUSES


def a1_range(title: str) -> str:
    """A1 reference to the top-left cell of tab *title*."""
    return "'{}'!A1".format(title.replace("'", "''"))


class BaseSheetRepository(ABC):
    """Base class that wires a repository to the Sheets API client.

    Subclasses declare:
    - ``SHEET_TITLE`` - the tab this repository appends to.
    - ``HEADER`` - the header row written when the tab is created.

    The ``from_manager`` classmethod is the standard factory used
    throughout the app.
    """

    SHEET_TITLE: ClassVar[str]
    HEADER: ClassVar[list[str]]

    def __init__(self, manager: SheetsManager) -> None:
        self._manager = manager

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_manager(cls: type[T], manager: SheetsManager) -> T:
        """Instantiate the repository using the shared ``SheetsManager``.

        Usage::

            repo = ResultsRepository.from_manager(sheets)
        """
        return cls(manager)

    # ------------------------------------------------------------------
    # Request execution
    # ------------------------------------------------------------------

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=lambda rs: rs.attempt_number >= settings.sheets_max_retries + 1,
        wait=wait_exponential(multiplier=1, min=1, max=10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=False,
    )
    async def _execute_with_retry(self, make_request: Callable[[Any], Any]) -> Any:
        service = self._manager.get_service()
        http = self._manager.new_http()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, lambda: make_request(service).execute(http=http)
        )

    async def _execute(self, make_request: Callable[[Any], Any]) -> Any:
        """Build a request from the API resource and execute it off-loop.

        Transient API errors (429 / 5xx) are retried with exponential
        backoff.  Raises :class:`SheetsError` on permanent failure and
        ``SheetsConfigError`` when credentials are missing.
        """
        try:
            return await self._execute_with_retry(make_request)
        except RetryError as exc:
            raise SheetsError(
                f"Sheets API call failed after {settings.sheets_max_retries + 1} "
                f"attempts: {exc.last_attempt.exception()}"
            ) from exc
        except HttpError as exc:
            raise SheetsError(f"Sheets API call failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Tabs and rows
    # ------------------------------------------------------------------

    async def sheet_titles(self) -> set[str]:
        spreadsheet_id = self._manager.spreadsheet_id
        info = await self._execute(
            lambda service: service.spreadsheets().get(
                spreadsheetId=spreadsheet_id, fields="sheets.properties.title"
            )
        )
        return {sheet["properties"]["title"] for sheet in info.get("sheets", [])}

    async def add_sheet(self, title: str, header: list[str]) -> None:
        """Create tab *title* and write *header* as its first row."""
        spreadsheet_id = self._manager.spreadsheet_id
        body = {"requests": [{"addSheet": {"properties": {"title": title}}}]}
        await self._execute(
            lambda service: service.spreadsheets().batchUpdate(
                spreadsheetId=spreadsheet_id, body=body
            )
        )
        await self.append_rows(title, [list(header)])
        logger.info("Created sheet %r", title)

    async def ensure_sheet(self) -> None:
        """Create ``SHEET_TITLE`` with ``HEADER`` unless it already exists."""
        if self.SHEET_TITLE not in await self.sheet_titles():
            await self.add_sheet(self.SHEET_TITLE, self.HEADER)

    async def append_rows(self, title: str, rows: list[list[CellValue]]) -> None:
        spreadsheet_id = self._manager.spreadsheet_id
        body = {"values": rows}
        await self._execute(
            lambda service: service.spreadsheets()
            .values()
            .append(
                spreadsheetId=spreadsheet_id,
                range=a1_range(title),
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body=body,
            )
        )
