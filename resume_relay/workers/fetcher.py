"""Async file downloader.

Responsible solely for retrieving the raw bytes of an uploaded document.

Uses httpx.AsyncClient which is meant to be long-lived and reused.
A single shared client is managed by the module; see ``get_http_client``
and ``close_http_client`` for lifecycle hooks.

Downloads are a single attempt: the form service redelivers the webhook
when we answer with an error, so retrying here would only duplicate work.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from resume_relay.core.config import settings

logger = logging.getLogger(__name__)

# Module-level shared client
_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Return the shared AsyncClient.  Creates one if missing."""
    global _http_client  # noqa: PLW0603
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout),
            follow_redirects=True,
            verify=settings.http_verify_ssl,
            headers={"User-Agent": "ResumeRelay/1.0"},
        )
    return _http_client


async def close_http_client() -> None:
    """Close the shared AsyncClient gracefully."""
    global _http_client  # noqa: PLW0603
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
        _http_client = None
        logger.info("HTTP client closed.")


class FetchError(Exception):
    """Raised when the uploaded file cannot be downloaded."""


def _is_vendor_host(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    domain = settings.vendor_domain.lower()
    return host == domain or host.endswith("." + domain)


def build_auth_headers(url: str) -> dict[str, str]:
    """Bearer auth for vendor-hosted uploads, when a token is configured."""
    if settings.tally_api_key and _is_vendor_host(url):
        return {"Authorization": f"Bearer {settings.tally_api_key}"}
    return {}


async def download_file(url: str) -> bytes:
    """GET *url* and return the response body.

    Raises :class:`FetchError` on transport errors and non-2xx responses.
    """
    client = get_http_client()
    logger.info("Downloading file from %s", url)

    try:
        response = await client.get(url, headers=build_auth_headers(url))
    except httpx.InvalidURL as exc:
        raise FetchError(f"Invalid URL '{url}': {exc}") from exc
    except httpx.RequestError as exc:
        raise FetchError(f"Request error for '{url}': {exc}") from exc

    if not response.is_success:
        raise FetchError(
            f"Failed to download file: {response.status_code} {response.reason_phrase}"
        )

    content = response.content
    logger.info("Downloaded file: %d bytes", len(content))
    return content
