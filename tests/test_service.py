from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from resume_relay.core.config import settings
from resume_relay.core.sheets import SheetsConfigError, SheetsManager
from resume_relay.models.sheets.records import (
    CELL_CHAR_LIMIT,
    DETAIL_COLUMNS,
    SUMMARY_COLUMNS,
    DetailRecord,
    SummaryRecord,
)
from resume_relay.models.webhook.result import ScrapeResult, TableData
from resume_relay.models.webhook.schemas import UploadReference
from resume_relay.repositories.base import SheetsError, a1_range
from resume_relay.repositories.sheets.repository import ResultsRepository
from resume_relay.services.webhook.report import (
    detail_records,
    detail_sheet_title,
    summary_record,
)
from resume_relay.services.webhook.service import (
    AnalysisTimeoutError,
    ResumeAnalysisService,
)
from resume_relay.workers.errors import BrowserError, TableNotFoundError
from resume_relay.workers.fetcher import FetchError

from tests.payloads import FILE_URL, TABLE

_UPLOAD = UploadReference(
    url=FILE_URL, name="resume.pdf", mime_type="application/pdf", size=2048
)


def _make_result(**table) -> ScrapeResult:
    return ScrapeResult.from_table(
        TableData(**{**TABLE, **table}),
        timestamp="2026-10-18T12:00:00.000Z",
        page_title="OpenResume",
        url="https://www.open-resume.com/resume-parser",
    )


def _http_error(status: int) -> HttpError:
    resp = httplib2.Response({"status": status, "reason": "error"})
    return HttpError(resp, json.dumps({"error": {"message": "boom"}}).encode())


# ---------------------------------------------------------------------------
# Row building
# ---------------------------------------------------------------------------


class TestReport:
    def test_summary_record(self):
        record = summary_record(_make_result(), _UPLOAD)
        assert record.filename == "resume.pdf"
        assert record.file_size == "2 KB"
        assert record.status == "Success"
        assert record.total_rows == 3
        assert record.total_columns == 2
        assert json.loads(record.raw_data)["headers"] == TABLE["headers"]
        assert record.notes == "Analysis completed successfully"

    def test_summary_row_follows_column_order(self):
        row = summary_record(_make_result(), _UPLOAD).to_row()
        assert len(row) == len(SUMMARY_COLUMNS)
        assert row[1] == "resume.pdf"
        assert row[5] == 3

    def test_unknown_size_is_zero_kb(self):
        record = summary_record(_make_result(), UploadReference(url=FILE_URL))
        assert record.file_size == "0 KB"

    def test_detail_records_sections(self):
        records = detail_records(_make_result(), _UPLOAD)
        fields = [r.field for r in records]
        assert fields[:7] == [
            "Filename",
            "File Size (KB)",
            "URL",
            "Page Title",
            "Analysis Timestamp",
            "Total Rows Found",
            "Total Columns Found",
        ]
        assert fields.index("--- TABLE HEADERS ---") < fields.index("Header 1")
        assert {"Header 1": "Name", "Header 2": "Jane Doe"}.items() <= {
            r.field: r.data for r in records
        }.items()
        row_two = next(r for r in records if r.field == "Row 2")
        assert row_two.data == "Email | jane@example.com"
        assert fields[-1] == "Complete JSON"
        assert json.loads(records[-1].data)["rows"] == TABLE["rows"]

    def test_detail_records_without_table(self):
        records = detail_records(_make_result(headers=[], rows=[], text=""), _UPLOAD)
        by_field = {r.field: r.data for r in records}
        assert by_field["Headers"] == "No headers found"
        assert by_field["Table Data"] == "No table data found"
        assert by_field["Table Text Content"] == "No text content"

    def test_detail_records_skip_empty_rows(self):
        records = detail_records(_make_result(rows=[["a"], [], ["b"]]), _UPLOAD)
        fields = [r.field for r in records]
        assert "Row 1" in fields and "Row 3" in fields
        assert "Row 2" not in fields

    def test_detail_sheet_title(self):
        now = datetime(2026, 10, 18, 9, 5, 7, 250_000, tzinfo=timezone.utc)
        title = detail_sheet_title(now)
        assert title.startswith("Analysis_20261018T090507250_")
        assert len(title) == len("Analysis_20261018T090507250_") + 6

    def test_detail_sheet_titles_differ_within_same_instant(self):
        now = datetime(2026, 10, 18, 9, 5, 7, tzinfo=timezone.utc)
        assert detail_sheet_title(now) != detail_sheet_title(now)

    def test_long_cells_are_truncated(self):
        row = DetailRecord(field="Complete JSON", data="x" * (CELL_CHAR_LIMIT + 10)).to_row()
        assert len(row[1]) == CELL_CHAR_LIMIT


# ---------------------------------------------------------------------------
# Repository tests
# ---------------------------------------------------------------------------


class TestResultsRepository:
    @pytest.fixture
    def api(self):
        return MagicMock(name="sheets_api")

    @pytest.fixture
    def repo(self, api):
        manager = MagicMock(spec=SheetsManager)
        manager.spreadsheet_id = "sheet-123"
        manager.get_service.return_value = api
        return ResultsRepository.from_manager(manager)

    def _existing(self, api, *titles):
        api.spreadsheets.return_value.get.return_value.execute.return_value = {
            "sheets": [{"properties": {"title": t}} for t in titles]
        }

    async def test_append_summary_to_existing_sheet(self, repo, api):
        self._existing(api, "Resume Analysis Results")
        record = summary_record(_make_result(), _UPLOAD)

        await repo.append_summary(record)

        api.spreadsheets.return_value.batchUpdate.assert_not_called()
        append = api.spreadsheets.return_value.values.return_value.append
        append.assert_called_once()
        kwargs = append.call_args.kwargs
        assert kwargs["spreadsheetId"] == "sheet-123"
        assert kwargs["range"] == "'Resume Analysis Results'!A1"
        assert kwargs["body"] == {"values": [record.to_row()]}

    async def test_append_summary_creates_missing_sheet(self, repo, api):
        self._existing(api, "Sheet1")

        await repo.append_summary(summary_record(_make_result(), _UPLOAD))

        batch = api.spreadsheets.return_value.batchUpdate
        batch.assert_called_once_with(
            spreadsheetId="sheet-123",
            body={
                "requests": [
                    {"addSheet": {"properties": {"title": "Resume Analysis Results"}}}
                ]
            },
        )
        append = api.spreadsheets.return_value.values.return_value.append
        bodies = [c.kwargs["body"]["values"] for c in append.call_args_list]
        assert bodies[0] == [SUMMARY_COLUMNS]
        assert len(bodies) == 2

    async def test_write_detail(self, repo, api):
        records = [DetailRecord(field="Filename", data="resume.pdf")]

        await repo.write_detail("Analysis_20261018T090507", records)

        append = api.spreadsheets.return_value.values.return_value.append
        bodies = [c.kwargs["body"]["values"] for c in append.call_args_list]
        assert bodies == [[DETAIL_COLUMNS], [["Filename", "resume.pdf"]]]

    async def test_transient_error_is_retried(self, repo, api):
        api.spreadsheets.return_value.get.return_value.execute.side_effect = [
            _http_error(503),
            {"sheets": []},
        ]
        with (
            patch.object(settings, "sheets_max_retries", 1),
            patch("asyncio.sleep", new_callable=AsyncMock),
        ):
            assert await repo.sheet_titles() == set()

    async def test_retries_exhausted_raises_sheets_error(self, repo, api):
        execute = api.spreadsheets.return_value.get.return_value.execute
        execute.side_effect = _http_error(429)
        with (
            patch.object(settings, "sheets_max_retries", 1),
            patch("asyncio.sleep", new_callable=AsyncMock),
        ):
            with pytest.raises(SheetsError, match="after 2 attempts"):
                await repo.sheet_titles()
        assert execute.call_count == 2

    async def test_permanent_error_is_not_retried(self, repo, api):
        execute = api.spreadsheets.return_value.get.return_value.execute
        execute.side_effect = _http_error(403)
        with pytest.raises(SheetsError):
            await repo.sheet_titles()
        assert execute.call_count == 1

    async def test_each_call_gets_its_own_http(self, repo, api):
        repo._manager.new_http.side_effect = lambda: MagicMock(name="http")
        self._existing(api, "Sheet1")
        await repo.sheet_titles()
        await repo.sheet_titles()
        execute = api.spreadsheets.return_value.get.return_value.execute
        first, second = (c.kwargs["http"] for c in execute.call_args_list)
        assert first is not second

    def test_a1_range_quotes_title(self):
        assert a1_range("Bob's sheet") == "'Bob''s sheet'!A1"


class TestSheetsManager:
    def test_missing_credentials_raise(self):
        manager = SheetsManager()
        with (
            patch.object(settings, "google_service_account_email", None),
            patch.object(manager, "_service", None),
        ):
            with pytest.raises(SheetsConfigError, match="not configured"):
                manager.get_service()

    def test_connect_unescapes_private_key(self):
        manager = SheetsManager()
        with (
            patch.object(settings, "google_service_account_email", "bot@p.iam.gserviceaccount.com"),
            patch.object(settings, "google_private_key", "-----BEGIN-----\\nabc\\n-----END-----"),
            patch.object(settings, "google_sheet_id", "sheet-123"),
            patch(
                "resume_relay.core.sheets.service_account.Credentials.from_service_account_info"
            ) as mock_creds,
            patch("resume_relay.core.sheets.build") as mock_build,
            patch.object(manager, "_service", None),
        ):
            assert manager.get_service() is mock_build.return_value
            info = mock_creds.call_args.args[0]
        assert info["private_key"] == "-----BEGIN-----\nabc\n-----END-----"
        assert mock_build.call_args.args[:2] == ("sheets", "v4")

    def test_new_http_builds_fresh_connection(self):
        manager = SheetsManager()
        creds = MagicMock(name="credentials")
        with (
            patch.object(manager, "_credentials", creds),
            patch("resume_relay.core.sheets.google_auth_httplib2.AuthorizedHttp") as mock_auth,
        ):
            manager.new_http()
            manager.new_http()
        assert mock_auth.call_count == 2
        first, second = (c.kwargs["http"] for c in mock_auth.call_args_list)
        assert first is not second
        assert all(c.args[0] is creds for c in mock_auth.call_args_list)


# ---------------------------------------------------------------------------
# ResumeAnalysisService tests
# ---------------------------------------------------------------------------


class TestResumeAnalysisService:
    @pytest.fixture
    def repo(self):
        return AsyncMock(spec=ResultsRepository)

    @pytest.fixture
    def service(self, repo):
        return ResumeAnalysisService(repo)

    @pytest.fixture
    def downloaded(self):
        with patch(
            "resume_relay.services.webhook.service.download_file",
            new_callable=AsyncMock,
            return_value=b"%PDF-1.4",
        ) as mock_download:
            yield mock_download

    async def test_analyze_downloads_then_parses(self, service, downloaded, fake_browser):
        result = await service.analyze(_UPLOAD)
        downloaded.assert_awaited_once_with(FILE_URL)
        assert result.total_rows == 3
        fake_browser.browser.close.assert_awaited_once()

    async def test_download_failure_never_launches_browser(self, service, fake_browser):
        with patch(
            "resume_relay.services.webhook.service.download_file",
            new_callable=AsyncMock,
            side_effect=FetchError("Failed to download file: 404 Not Found"),
        ):
            with pytest.raises(FetchError):
                await service.analyze(_UPLOAD)
        fake_browser.playwright.chromium.launch.assert_not_called()

    @pytest.mark.parametrize(
        "stage, fail, expected",
        [
            (
                "navigation",
                lambda fb: setattr(
                    fb.page.goto, "side_effect", PlaywrightTimeoutError("Timeout 45000ms")
                ),
                PlaywrightTimeoutError,
            ),
            (
                "injection",
                lambda fb: setattr(
                    fb.file_input.set_input_files, "side_effect", PlaywrightError("detached")
                ),
                PlaywrightError,
            ),
            (
                "missing input",
                lambda fb: setattr(fb.page.query_selector, "return_value", None),
                BrowserError,
            ),
            (
                "selector wait",
                lambda fb: setattr(
                    fb.page.wait_for_selector, "side_effect", PlaywrightTimeoutError("t/o")
                ),
                TableNotFoundError,
            ),
            (
                "scrape",
                lambda fb: setattr(
                    fb.page.evaluate, "side_effect", PlaywrightError("context destroyed")
                ),
                PlaywrightError,
            ),
        ],
    )
    async def test_browser_released_once_on_failure(
        self, service, downloaded, fake_browser, stage, fail, expected
    ):
        fail(fake_browser)
        with pytest.raises(expected):
            await service.analyze(_UPLOAD)
        fake_browser.browser.close.assert_awaited_once()
        fake_browser.playwright.stop.assert_awaited_once()

    async def test_execution_cap_releases_browser(self, service, downloaded, fake_browser):
        async def slow_goto(*args, **kwargs):
            await asyncio.sleep(5)

        fake_browser.page.goto.side_effect = slow_goto
        with patch.object(settings, "max_duration", 0.05):
            with pytest.raises(AnalysisTimeoutError, match="Execution exceeded"):
                await service.process(_UPLOAD)
        fake_browser.browser.close.assert_awaited_once()

    async def test_save_results_writes_summary_and_detail(self, service, repo):
        await service.save_results(_make_result(), _UPLOAD)
        repo.append_summary.assert_awaited_once()
        assert isinstance(repo.append_summary.await_args.args[0], SummaryRecord)
        title, records = repo.write_detail.await_args.args
        assert title.startswith("Analysis_")
        assert records[0] == DetailRecord(field="Filename", data="resume.pdf")

    async def test_failed_result_has_no_detail_sheet(self, service, repo):
        result = _make_result().model_copy(update={"success": False})
        await service.save_results(result, _UPLOAD)
        repo.append_summary.assert_awaited_once()
        repo.write_detail.assert_not_awaited()

    async def test_detail_failure_is_swallowed(self, service, repo):
        repo.write_detail.side_effect = SheetsError("quota")
        await service.save_results(_make_result(), _UPLOAD)  # must not raise

    async def test_summary_failure_propagates_from_save(self, service, repo):
        repo.append_summary.side_effect = SheetsConfigError("not configured")
        with pytest.raises(SheetsConfigError):
            await service.save_results(_make_result(), _UPLOAD)
        repo.write_detail.assert_not_awaited()

    async def test_process_returns_result_when_sheets_fail(
        self, service, repo, downloaded, fake_browser
    ):
        repo.append_summary.side_effect = SheetsError("Sheets API call failed")
        result = await service.process(_UPLOAD)
        assert result.total_rows == 3
