from __future__ import annotations

import logging
import traceback

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from resume_relay.core.config import settings
from resume_relay.core.sheets import sheets
from resume_relay.models.common import ErrorResponse
from resume_relay.models.webhook.schemas import (
    FileInfo,
    ResultSummary,
    WebhookResponse,
)
from resume_relay.repositories.sheets.repository import ResultsRepository
from resume_relay.services.webhook.intake import (
    extract_upload,
    file_fields,
    is_resume_file,
    parse_payload,
)
from resume_relay.services.webhook.service import ResumeAnalysisService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


def _get_service() -> ResumeAnalysisService:
    """FastAPI dependency that builds a ``ResumeAnalysisService`` per request."""
    return ResumeAnalysisService(ResultsRepository.from_manager(sheets))


# ---------------------------------------------------------------------------
# OPTIONS (other methods are answered 405 by the app-level handler)
# ---------------------------------------------------------------------------


@router.options("", include_in_schema=False)
async def preflight() -> Response:
    return Response(status_code=200)


# ---------------------------------------------------------------------------
# POST /webhook
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=WebhookResponse,
    summary="Parse an uploaded resume and record the result",
)
async def receive_webhook(
    request: Request,
    service: ResumeAnalysisService = Depends(_get_service),
) -> JSONResponse:
    """Handle a form-submission webhook.

    Blocks until the parser page has produced a result table.

    - **200**: resume parsed; summary (and full results outside production)
    - **400**: no uploaded file, or not a PDF/DOC/DOCX
    - **500**: download, browser or scrape failure
    """
    logger.info("Received form webhook")
    try:
        body = await request.json()
    except ValueError:
        body = None
    logger.debug("Webhook data: %s", body)

    # Logged only; the signature is not verified.
    if request.headers.get(settings.signature_header):
        logger.info("Webhook signature header present")

    payload = parse_payload(body)
    upload = extract_upload(payload)

    if upload is None or not upload.url:
        logger.warning("No file found in webhook data")
        return JSONResponse(
            status_code=400,
            content={
                "error": "No file found in webhook data",
                "debug": {
                    "fieldsFound": payload.data.fields_found,
                    "fileFields": [f.model_dump() for f in file_fields(payload)],
                },
            },
        )

    logger.info("File found: %s (%s)", upload.name, upload.mime_type)

    if not is_resume_file(upload):
        logger.warning("File %s doesn't appear to be a resume", upload.name)
        return JSONResponse(
            status_code=400,
            content={
                "error": (
                    "Uploaded file doesn't appear to be a resume "
                    "(PDF/DOC/DOCX expected)"
                ),
                "fileInfo": upload.model_dump(by_alias=True, exclude_none=True),
            },
        )

    try:
        result = await service.process(upload)
    except Exception as exc:
        logger.exception("Webhook processing failed for %s", upload.url)
        error = ErrorResponse(
            error=str(exc) or type(exc).__name__,
            details="Browser automation failed",
            stack=None if settings.is_production else traceback.format_exc(),
        )
        return JSONResponse(status_code=500, content=error.model_dump(exclude_none=True))

    response = WebhookResponse(
        message="Analysis complete and saved to Google Sheets!",
        file_info=FileInfo(
            name=upload.name, size=upload.size, mime_type=upload.mime_type
        ),
        summary=ResultSummary(
            total_rows=result.total_rows,
            total_columns=result.total_columns,
            timestamp=result.timestamp,
        ),
        full_results=None if settings.is_production else result,
    )
    return JSONResponse(content=response.model_dump(by_alias=True, exclude_none=True))
