"""Spreadsheet rows describing one analysis run."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Optional

from resume_relay.models.sheets.records import DetailRecord, SummaryRecord
from resume_relay.models.webhook.result import ScrapeResult
from resume_relay.models.webhook.schemas import UploadReference

_NOT_AVAILABLE = "N/A"


def _size_kb(upload: UploadReference) -> int:
    return round((upload.size or 0) / 1024)


def _local_timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _section(title: str) -> DetailRecord:
    marker = f"--- {title} ---"
    return DetailRecord(field=marker, data=marker)


def detail_sheet_title(now: Optional[datetime] = None) -> str:
    """``Analysis_<UTC timestamp, ms>_<random suffix>``.

    The suffix keeps two runs finishing in the same millisecond apart.
    """
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y%m%dT%H%M%S") + f"{now.microsecond // 1000:03d}"
    return f"Analysis_{stamp}_{uuid.uuid4().hex[:6]}"


def summary_record(result: ScrapeResult, upload: UploadReference) -> SummaryRecord:
    return SummaryRecord(
        timestamp=_local_timestamp(),
        filename=upload.name or "",
        file_size=f"{_size_kb(upload)} KB",
        url=result.url or _NOT_AVAILABLE,
        status="Success" if result.success else "Failed",
        total_rows=result.total_rows,
        total_columns=result.total_columns,
        raw_data=json.dumps(result.table_data.model_dump()),
        notes="Analysis completed successfully" if result.success else "Analysis failed",
    )


def detail_records(result: ScrapeResult, upload: UploadReference) -> list[DetailRecord]:
    table = result.table_data
    records = [
        DetailRecord(field="Filename", data=upload.name or ""),
        DetailRecord(field="File Size (KB)", data=_size_kb(upload)),
        DetailRecord(field="URL", data=result.url or _NOT_AVAILABLE),
        DetailRecord(field="Page Title", data=result.page_title or _NOT_AVAILABLE),
        DetailRecord(field="Analysis Timestamp", data=_local_timestamp()),
        DetailRecord(field="Total Rows Found", data=result.total_rows),
        DetailRecord(field="Total Columns Found", data=result.total_columns),
        _section("TABLE HEADERS"),
    ]

    if table.headers:
        records.extend(
            DetailRecord(field=f"Header {index}", data=header)
            for index, header in enumerate(table.headers, start=1)
        )
    else:
        records.append(DetailRecord(field="Headers", data="No headers found"))

    records.append(_section("TABLE DATA"))
    if table.rows:
        records.extend(
            DetailRecord(field=f"Row {index}", data=" | ".join(row))
            for index, row in enumerate(table.rows, start=1)
            if row
        )
    else:
        records.append(DetailRecord(field="Table Data", data="No table data found"))

    records.append(_section("RAW TABLE TEXT"))
    records.append(
        DetailRecord(field="Table Text Content", data=table.text or "No text content")
    )
    records.append(_section("FULL JSON DATA"))
    records.append(
        DetailRecord(field="Complete JSON", data=json.dumps(table.model_dump(), indent=2))
    )
    return records
