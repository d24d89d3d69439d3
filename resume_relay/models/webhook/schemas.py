from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from resume_relay.models.webhook.result import ScrapeResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WebhookField(BaseModel):
    """One answer in a form-submission payload.

    Unknown keys (``key``, ``label``, ...) are kept so they can be echoed
    back in debug output.
    """

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    value: Any = None


class WebhookData(BaseModel):
    model_config = ConfigDict(extra="allow")

    fields: list[WebhookField] = []
    # Raw entry count, malformed entries included.
    fields_found: int = 0


class WebhookPayload(BaseModel):
    """Request body sent by the form service: ``{"data": {"fields": [...]}}``."""

    model_config = ConfigDict(extra="allow")

    data: WebhookData = WebhookData()


class UploadReference(BaseModel):
    """The uploaded document a submission points at."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    url: Optional[str] = None
    name: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None


class FileInfo(_CamelModel):
    name: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None


class ResultSummary(_CamelModel):
    total_rows: int
    total_columns: int
    timestamp: str


class WebhookResponse(_CamelModel):
    """Body returned to the webhook caller on success.

    ``full_results`` is only populated outside production.
    """

    success: bool = True
    message: str
    file_info: FileInfo
    summary: ResultSummary
    full_results: Optional[ScrapeResult] = None
