from __future__ import annotations

import logging
import re

import httpx

from job_parse.config import Settings
from job_parse.errors import ErrorKind, FetchError
from job_parse.models import RawPage

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "text/html,application/json;q=0.9,*/*;q=0.8"
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def validate_url(url: str | None) -> str:
    candidate = (url or "").strip()
    if not candidate or not _SCHEME_RE.match(candidate):
        raise FetchError(ErrorKind.INVALID_URL, "Invalid URL (must start with http/https).")
    try:
        parsed = httpx.URL(candidate)
    except httpx.InvalidURL as exc:
        raise FetchError(ErrorKind.INVALID_URL, f"Invalid URL: {exc}") from exc
    if not parsed.host:
        raise FetchError(ErrorKind.INVALID_URL, "Invalid URL (missing host).")
    return candidate


def _request_headers(settings: Settings) -> dict[str, str]:
    return {
        "User-Agent": settings.user_agent,
        "Accept": ACCEPT_HEADER,
        "Accept-Language": "en-US,en;q=0.9",
    }


def _describe(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


def _get(
    url: str,
    settings: Settings,
    *,
    timeout_seconds: float,
    transport: httpx.BaseTransport | None,
) -> httpx.Response:
    with httpx.Client(
        timeout=timeout_seconds,
        headers=_request_headers(settings),
        follow_redirects=True,
        max_redirects=settings.fetch_max_redirects,
        transport=transport,
    ) as client:
        response = client.get(url)
        return response


def fetch_page(
    url: str,
    settings: Settings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> RawPage:
    target = validate_url(url)
    try:
        response = _get(
            target,
            settings,
            timeout_seconds=settings.fetch_timeout_seconds,
            transport=transport,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning("fetch failed for %s: %s", target, exc)
        raise FetchError(ErrorKind.FETCH_FAILED, _describe(exc)) from exc

    if not response.is_success:
        logger.info("fetch of %s returned HTTP %s", target, response.status_code)
        raise FetchError(
            ErrorKind.BAD_STATUS,
            f"URL returned HTTP {response.status_code}",
            status=response.status_code,
        )

    body = response.content
    if not body:
        raise FetchError(ErrorKind.EMPTY_BODY, "Empty response body.")

    logger.debug("fetched %s (%d bytes, %s)", target, len(body), response.headers.get("content-type"))
    return RawPage(
        url=target,
        content_type=response.headers.get("content-type", ""),
        body=body,
        encoding=response.charset_encoding,
    )


def check_url(
    url: str,
    settings: Settings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> dict[str, object]:
    try:
        target = validate_url(url)
    except FetchError as exc:
        return {"url_error": exc.message}

    try:
        response = _get(
            target,
            settings,
            timeout_seconds=settings.diag_timeout_seconds,
            transport=transport,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        return {"url_error": _describe(exc)}

    return {
        "url_http": response.status_code,
        "url_ct": response.headers.get("content-type", ""),
        "url_len": len(response.content),
    }
