"""Result-table extraction.

The table is read in a single ``page.evaluate`` round trip; the returned
plain object is validated into :class:`TableData` on the Python side.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from playwright.async_api import Page

from resume_relay.models.webhook.result import ScrapeResult, TableData
from resume_relay.workers.errors import TableNotFoundError

logger = logging.getLogger(__name__)

# Tried in order when the parser's own table selector does not match.
FALLBACK_SELECTORS: tuple[str, ...] = (
    "main table",
    "section table",
    "div table",
    "table",
)

_EXTRACT_TABLE_JS = """
({ selector, fallbacks }) => {
  let table = document.querySelector(selector);
  if (!table) {
    for (const candidate of fallbacks) {
      table = document.querySelector(candidate);
      if (table) break;
    }
  }
  if (!table) {
    return null;
  }

  const cellText = (cell) => (cell.textContent || "").trim();

  let headers = [];
  const headerRow = table.querySelector("thead tr, tr:first-child");
  if (headerRow) {
    headers = Array.from(headerRow.querySelectorAll("th, td")).map(cellText);
  }

  const rows = Array.from(table.querySelectorAll("tbody tr, tr")).map((row) =>
    Array.from(row.querySelectorAll("td, th")).map(cellText)
  );

  return {
    html: table.outerHTML,
    text: table.innerText,
    headers: headers,
    rows: rows,
  };
}
"""


def _utc_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def scrape_table(page: Page, selector: str) -> ScrapeResult:
    """Read headers, rows, text and markup of the table matched by *selector*.

    Falls back through :data:`FALLBACK_SELECTORS` in the page if *selector*
    has gone stale between the wait and the read.
    """
    raw = await page.evaluate(
        _EXTRACT_TABLE_JS,
        {"selector": selector, "fallbacks": list(FALLBACK_SELECTORS)},
    )
    if raw is None:
        raise TableNotFoundError("Table not found")

    table = TableData.model_validate(raw)
    result = ScrapeResult.from_table(
        table,
        timestamp=_utc_timestamp(),
        page_title=await page.title(),
        url=page.url,
    )
    logger.info(
        "Table extraction complete: %d rows, %d columns",
        result.total_rows,
        result.total_columns,
    )
    return result
