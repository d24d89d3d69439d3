"""Webhook payload intake: find the uploaded file and check its type."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError

from resume_relay.models.webhook.schemas import (
    UploadReference,
    WebhookData,
    WebhookField,
    WebhookPayload,
)

logger = logging.getLogger(__name__)

FILE_UPLOAD_TYPE = "FILE_UPLOAD"

ALLOWED_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)


def _parse_fields(raw: list[Any]) -> list[WebhookField]:
    fields = []
    for index, item in enumerate(raw):
        try:
            fields.append(WebhookField.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping malformed webhook field %d: %s", index, exc)
    return fields


def parse_payload(body: Any) -> WebhookPayload:
    """Validate a decoded request body field by field.

    A malformed field is dropped on its own; the rest of the submission is
    still searched for an upload.  ``fields_found`` keeps the raw count.
    """
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict):
        return WebhookPayload()
    raw = data.get("fields")
    if not isinstance(raw, list):
        if raw is not None:
            logger.warning("Malformed webhook payload: fields is %s", type(raw).__name__)
        return WebhookPayload()
    return WebhookPayload(
        data=WebhookData(fields=_parse_fields(raw), fields_found=len(raw))
    )


def file_fields(payload: WebhookPayload) -> list[WebhookField]:
    return [field for field in payload.data.fields if field.type == FILE_UPLOAD_TYPE]


def _upload_from_mapping(value: Any) -> UploadReference:
    if not isinstance(value, dict):
        return UploadReference()
    try:
        return UploadReference.model_validate(value)
    except ValidationError:
        url = value.get("url")
        return UploadReference(url=url if isinstance(url, str) else None)


def extract_upload(payload: WebhookPayload) -> Optional[UploadReference]:
    """Return the first file upload in *payload*, or ``None``.

    The form service sends an upload as a list of file objects, a single
    file object, or a bare URL string.  Only the first file of the first
    non-empty upload field is used.
    """
    for field in file_fields(payload):
        value = field.value
        if not value:
            continue
        if isinstance(value, list):
            return _upload_from_mapping(value[0])
        if isinstance(value, dict) and value.get("url"):
            return _upload_from_mapping(value)
        if isinstance(value, str):
            return UploadReference(url=value)
    return None


def is_resume_file(upload: UploadReference) -> bool:
    """PDF, DOC and DOCX uploads only; an undeclared type is rejected."""
    return bool(upload.mime_type) and upload.mime_type in ALLOWED_MIME_TYPES
