from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

import resume_relay.workers.fetcher as fetcher_module
from resume_relay.main import app

from tests.payloads import PARSER_URL, TABLE


@dataclass
class FakeBrowser:
    """Handles on the mocked Playwright objects used by ``BrowserSession``."""

    playwright: MagicMock
    browser: MagicMock
    page: MagicMock
    file_input: MagicMock


@pytest.fixture
def fake_browser():
    """Replace Playwright with mocks that render ``TABLE`` on the parser page."""
    file_input = MagicMock(name="file_input")
    file_input.set_input_files = AsyncMock()

    page = MagicMock(name="page")
    page.url = PARSER_URL
    page.goto = AsyncMock()
    page.query_selector = AsyncMock(return_value=file_input)
    page.wait_for_selector = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.evaluate = AsyncMock(return_value=TABLE)
    page.title = AsyncMock(return_value="OpenResume - Resume Parser")

    browser = MagicMock(name="browser")
    browser.new_page = AsyncMock(return_value=page)
    browser.close = AsyncMock()

    playwright = MagicMock(name="playwright")
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    with patch("resume_relay.workers.browser.async_playwright") as mock_apw:
        mock_apw.return_value.start = AsyncMock(return_value=playwright)
        yield FakeBrowser(
            playwright=playwright, browser=browser, page=page, file_input=file_input
        )


@pytest.fixture(autouse=True)
def reset_http_client():
    """Make every test build its own shared httpx client."""
    fetcher_module._http_client = None
    yield
    fetcher_module._http_client = None


@pytest.fixture
def client():
    """TestClient with lifespan shutdown hooks fully mocked."""
    with (
        patch("resume_relay.main.close_http_client", new_callable=AsyncMock),
        patch("resume_relay.core.sheets.SheetsManager.disconnect"),
    ):
        with TestClient(app) as c:
            yield c
