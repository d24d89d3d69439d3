"""Headless browser driver for the resume-parser page.

``BrowserSession`` owns the Playwright driver, the browser process and its
page for the duration of one webhook request.  Use it as an async context
manager; the browser is closed on every exit path, including cancellation
by the execution-time cap.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from resume_relay.core.config import settings
from resume_relay.models.webhook.result import ScrapeResult
from resume_relay.models.webhook.schemas import UploadReference
from resume_relay.workers.errors import BrowserError, TableNotFoundError
from resume_relay.workers.scraper import FALLBACK_SELECTORS, scrape_table

logger = logging.getLogger(__name__)

FILE_INPUT_SELECTOR = 'input[type="file"]'
DEFAULT_MIME_TYPE = "application/pdf"

LOCAL_CHROME_PATHS: dict[str, str] = {
    "win32": "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "linux": "/usr/bin/google-chrome-stable",
    "darwin": "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
}

SANDBOX_ARGS: list[str] = ["--no-sandbox", "--disable-setuid-sandbox"]

SERVERLESS_ARGS: list[str] = [
    *SANDBOX_ARGS,
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--disable-web-security",
    "--disable-features=VizDisplayCompositor",
    "--no-first-run",
    "--no-zygote",
    "--single-process",
    "--disable-extensions",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-ipc-flooding-protection",
]


def launch_options() -> dict[str, Any]:
    """Keyword arguments for ``chromium.launch`` in the current environment.

    Locally a system Chrome is used (configured path first, then the
    platform default).  Serverless deployments use Playwright's bundled
    Chromium with container-safe flags.
    """
    if settings.use_local_browser:
        options: dict[str, Any] = {"headless": True, "args": list(SANDBOX_ARGS)}
        executable = settings.chrome_executable_path or LOCAL_CHROME_PATHS.get(
            sys.platform
        )
        if executable:
            options["executable_path"] = executable
        return options

    return {
        "headless": True,
        "args": [
            *SERVERLESS_ARGS,
            f"--js-flags=--max-old-space-size={settings.memory_limit_mb}",
        ],
    }


def page_options() -> dict[str, Any]:
    if settings.use_local_browser:
        return {}
    return {
        "viewport": {"width": 1280, "height": 720},
        "ignore_https_errors": True,
    }


class BrowserSession:
    """One browser process and page, scoped to a single request."""

    def __init__(self) -> None:
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None

    async def __aenter__(self) -> BrowserSession:
        try:
            await self._launch()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def page(self) -> Page:
        if self._page is None:
            raise BrowserError("Browser session is not open")
        return self._page

    async def _launch(self) -> None:
        mode = "local" if settings.use_local_browser else "serverless"
        logger.info("Starting browser automation (%s)", mode)

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(**launch_options())
        logger.info("Browser launched successfully")

        self._page = await self._browser.new_page(**page_options())
        self._page.set_default_timeout(settings.page_timeout_ms)
        self._page.set_default_navigation_timeout(settings.page_timeout_ms)

    async def close(self) -> None:
        """Close the browser and stop the driver.  Safe to call twice."""
        browser, playwright = self._browser, self._playwright
        self._page = None
        self._browser = None
        self._playwright = None
        try:
            if browser is not None:
                await browser.close()
                logger.info("Browser closed")
        except PlaywrightError as exc:
            logger.warning("Error while closing browser: %s", exc)
        finally:
            if playwright is not None:
                await playwright.stop()

    async def open_parser(self) -> None:
        logger.info("Navigating to %s", settings.parser_url)
        await self.page.goto(
            settings.parser_url,
            wait_until="networkidle",
            timeout=settings.navigation_timeout_ms,
        )
        logger.info("Page loaded successfully")

    async def inject_file(self, content: bytes, upload: UploadReference) -> None:
        """Select *content* in the page's file input as if the user had."""
        file_input = await self.page.query_selector(FILE_INPUT_SELECTOR)
        if file_input is None:
            raise BrowserError("File input not found on page")

        await file_input.set_input_files(
            {
                "name": upload.name or "resume.pdf",
                "mimeType": upload.mime_type or DEFAULT_MIME_TYPE,
                "buffer": content,
            }
        )
        logger.info("File %s uploaded to page, waiting for analysis", upload.name)

    async def wait_for_table(self) -> str:
        """Wait for the result table and return the selector that matched.

        The parser's own selector is tried first; on timeout each of
        :data:`FALLBACK_SELECTORS` is tried in order.
        """
        try:
            await self.page.wait_for_selector(
                settings.table_selector, timeout=settings.table_timeout_ms
            )
            logger.info("Target table found")
            return settings.table_selector
        except PlaywrightTimeoutError:
            logger.warning("Target table not found, trying fallback selectors")

        for selector in FALLBACK_SELECTORS:
            try:
                await self.page.wait_for_selector(
                    selector, timeout=settings.fallback_timeout_ms
                )
            except PlaywrightTimeoutError:
                continue
            logger.info("Found table with fallback selector %r", selector)
            return selector

        raise TableNotFoundError("No table found on page")

    async def parse(self, content: bytes, upload: UploadReference) -> ScrapeResult:
        """Run the document through the parser page and scrape the result."""
        await self.open_parser()
        await self.inject_file(content, upload)
        selector = await self.wait_for_table()
        # Rows keep streaming in for a moment after the table appears.
        await self.page.wait_for_timeout(settings.settle_delay * 1000)
        return await scrape_table(self.page, selector)
