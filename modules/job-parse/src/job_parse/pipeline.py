from __future__ import annotations

import logging
import threading
from typing import Any

import httpx

from job_parse.config import Settings
from job_parse.errors import (
    ErrorKind,
    FetchError,
    ModelError,
    ParseError,
)
from job_parse.extractor import extract_page
from job_parse.fetcher import check_url, fetch_page, validate_url
from job_parse.model_client import complete, ping_models
from job_parse.models import (
    LOCAL_CALLER,
    CallerIdentity,
    Cancelled,
    ExtractedFields,
    Fetched,
    FetchFailed,
    ModelFailed,
    ParseFailed,
    PipelineOutcome,
    Success,
)
from job_parse.prompt import build_request
from job_parse.response_parser import parse_reply

logger = logging.getLogger(__name__)

STAGE_FETCH = "fetch"
STAGE_MODEL = "openai"
STAGE_PARSE = "parse"
STAGE_FATAL = "fatal"
STAGE_DONE = "done"


def _is_cancelled(cancel_event: threading.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def fetch_stage(
    url: str,
    settings: Settings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> Fetched | FetchFailed:
    try:
        page = fetch_page(url, settings, transport=transport)
        return Fetched(extract_page(page, settings.max_text_chars))
    except FetchError as exc:
        return FetchFailed(kind=exc.kind.value, message=exc.message)


def run_extraction(
    url: str,
    settings: Settings,
    credential: str,
    *,
    transport: httpx.BaseTransport | None = None,
    cancel_event: threading.Event | None = None,
) -> PipelineOutcome:
    try:
        validate_url(url)
    except FetchError as exc:
        return FetchFailed(kind=exc.kind.value, message=exc.message)
    if not credential:
        return ModelFailed(kind=ErrorKind.NO_CREDENTIAL.value, message="OpenAI key not configured")

    if _is_cancelled(cancel_event):
        return Cancelled(stage=STAGE_FETCH)
    fetched = fetch_stage(url, settings, transport=transport)
    if isinstance(fetched, FetchFailed):
        logger.info("fetch stage failed for %s: %s", url, fetched.kind)
        return fetched
    source = fetched.result

    if _is_cancelled(cancel_event):
        return Cancelled(stage=STAGE_MODEL)
    request = build_request(source)
    try:
        raw_reply = complete(request, credential, settings, transport=transport)
    except ModelError as exc:
        return ModelFailed(
            kind=exc.kind.value,
            message=exc.message,
            status=exc.status,
            body_excerpt=exc.body_excerpt,
        )

    if _is_cancelled(cancel_event):
        return Cancelled(stage=STAGE_PARSE)
    try:
        fields = parse_reply(raw_reply, source.source_url)
    except ParseError as exc:
        logger.warning("model reply could not be parsed for %s", url)
        return ParseFailed(excerpt=exc.body_excerpt, message=exc.message)

    return Success(fields=fields, source=source)


def _payload(stage: str, ok: bool, fields: ExtractedFields | None = None, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"stage": stage, "ok": ok}
    payload.update(extra)
    payload.update((fields or ExtractedFields()).as_dict())
    return payload


def outcome_payload(outcome: PipelineOutcome) -> dict[str, Any]:
    if isinstance(outcome, Success):
        return _payload(STAGE_DONE, True, outcome.fields)
    if isinstance(outcome, Fetched):
        return _payload(STAGE_FETCH, True)
    if isinstance(outcome, FetchFailed):
        return _payload(STAGE_FETCH, False, error=outcome.kind, message=outcome.message)
    if isinstance(outcome, ModelFailed):
        extra: dict[str, Any] = {"error": outcome.kind, "message": outcome.message}
        if outcome.status is not None:
            extra["status"] = outcome.status
        if outcome.body_excerpt:
            extra["body_excerpt"] = outcome.body_excerpt
        return _payload(STAGE_MODEL, False, **extra)
    if isinstance(outcome, ParseFailed):
        return _payload(
            STAGE_PARSE,
            False,
            error=ErrorKind.BAD_PARSE.value,
            message=outcome.message,
            body_excerpt=outcome.excerpt,
        )
    if isinstance(outcome, Cancelled):
        return _payload(
            STAGE_FATAL,
            False,
            error=ErrorKind.CANCELLED.value,
            message=f"extraction cancelled before {outcome.stage}",
        )
    raise TypeError(f"unknown pipeline outcome: {outcome!r}")


def handle_extract(
    url: str | None,
    settings: Settings,
    *,
    credential: str,
    caller: CallerIdentity = LOCAL_CALLER,
    transport: httpx.BaseTransport | None = None,
    cancel_event: threading.Event | None = None,
) -> dict[str, Any]:
    if not caller.authorized:
        return _payload(
            STAGE_FATAL, False, error=ErrorKind.FORBIDDEN.value, message="Caller is not authorized"
        )

    try:
        outcome = run_extraction(
            url or "",
            settings,
            credential,
            transport=transport,
            cancel_event=cancel_event,
        )
        return outcome_payload(outcome)
    except Exception as exc:  # outermost boundary: always answer with JSON
        logger.exception("unexpected failure extracting %s", url)
        return _payload(
            STAGE_FATAL,
            False,
            error=ErrorKind.UNEXPECTED.value,
            message=f"unexpected error: {exc}",
        )


def handle_diag(
    url: str | None,
    settings: Settings,
    *,
    credential: str,
    caller: CallerIdentity = LOCAL_CALLER,
    transport: httpx.BaseTransport | None = None,
) -> dict[str, Any]:
    result: dict[str, Any] = {
        "logged_in": caller.logged_in,
        "nonce_ok": caller.nonce_ok,
        "openai_key_present": bool(credential),
        "openai_http": None,
    }
    if not caller.authorized:
        return result

    try:
        result.update(ping_models(credential, settings, transport=transport))
        if url:
            result.update(check_url(url, settings, transport=transport))
    except Exception as exc:  # outermost boundary: always answer with JSON
        logger.exception("unexpected failure checking %s", url)
        result["error"] = ErrorKind.UNEXPECTED.value
        result["message"] = f"unexpected error: {exc}"
    return result
