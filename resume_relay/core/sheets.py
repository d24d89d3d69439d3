from __future__ import annotations

import logging
from typing import Any, Optional

import google_auth_httplib2
import httplib2
from google.oauth2 import service_account
from googleapiclient.discovery import build

from resume_relay.core.config import settings

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


class SheetsConfigError(RuntimeError):
    """Raised when the service-account credentials are not configured."""


class SheetsManager:
    """Singleton Google Sheets API connection manager.

    Use the module-level ``sheets`` instance; do not instantiate directly.
    The API client is built lazily on first use so the service still
    starts (and still answers webhooks) without spreadsheet credentials.

    Lifecycle::

        service = sheets.get_service()   # connects on first call
        ...
        sheets.disconnect()              # call once at shutdown
    """

    _instance: SheetsManager | None = None
    _service: Optional[Any] = None
    _credentials: Optional[service_account.Credentials] = None

    def __new__(cls) -> SheetsManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def spreadsheet_id(self) -> str:
        if not settings.google_sheet_id:
            raise SheetsConfigError("Google Sheets credentials not configured")
        return settings.google_sheet_id

    def connect(self) -> None:
        """Build the Sheets v4 client from service-account credentials."""
        if not settings.sheets_configured:
            raise SheetsConfigError("Google Sheets credentials not configured")

        self._credentials = service_account.Credentials.from_service_account_info(
            {
                "client_email": settings.google_service_account_email,
                # Keys pasted into env vars usually carry literal "\n".
                "private_key": settings.google_private_key.replace("\\n", "\n"),
                "token_uri": TOKEN_URI,
            },
            scopes=SCOPES,
        )
        self._service = build(
            "sheets", "v4", credentials=self._credentials, cache_discovery=False
        )
        logger.info("Connected to Google Sheets API.")

    def disconnect(self) -> None:
        """Drop the API client and its HTTP connection."""
        if self._service is not None:
            self._service.close()
            self._service = None
            self._credentials = None
            logger.info("Disconnected from Google Sheets API.")

    def get_service(self) -> Any:
        """Return the Sheets API resource, connecting if necessary."""
        if self._service is None:
            self.connect()
        return self._service

    def new_http(self) -> google_auth_httplib2.AuthorizedHttp:
        """Return an authorized transport for a single request.

        ``httplib2.Http`` is not thread-safe, and API calls run on executor
        threads, so every ``execute()`` gets its own connection.
        """
        if self._credentials is None:
            self.connect()
        return google_auth_httplib2.AuthorizedHttp(
            self._credentials, http=httplib2.Http()
        )


#: Module-level singleton; import and use this everywhere.
sheets: SheetsManager = SheetsManager()
