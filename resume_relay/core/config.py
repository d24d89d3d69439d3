from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

_OPEN_RESUME_TABLE = (
    "body > main > div > "
    "div.flex.px-6.text-gray-900.md\\:col-span-3."
    "md\\:h-\\[calc\\(100vh-var\\(--top-nav-bar-height\\)\\)\\]."
    "md\\:overflow-y-scroll > section > table"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Execution
    environment: str = "production"
    serverless: bool = False
    max_duration: float = 60.0
    memory_limit_mb: int = 1024

    # File download
    http_timeout: float = 30.0
    http_verify_ssl: bool = True
    tally_api_key: Optional[str] = None
    vendor_domain: str = "tally.so"
    signature_header: str = "tally-signature"

    # Browser
    parser_url: str = "https://www.open-resume.com/resume-parser"
    chrome_executable_path: Optional[str] = None
    table_selector: str = _OPEN_RESUME_TABLE
    page_timeout_ms: int = 60_000
    navigation_timeout_ms: int = 45_000
    table_timeout_ms: int = 50_000
    fallback_timeout_ms: int = 15_000
    settle_delay: float = 3.0

    # Google Sheets
    google_service_account_email: Optional[str] = None
    google_private_key: Optional[str] = None
    google_sheet_id: Optional[str] = None
    sheets_max_retries: int = 2

    # Logging
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def use_local_browser(self) -> bool:
        """Local Chrome unless running as a serverless production deployment."""
        return not (self.serverless and self.is_production)

    @property
    def sheets_configured(self) -> bool:
        return bool(
            self.google_service_account_email
            and self.google_private_key
            and self.google_sheet_id
        )


settings = Settings()
