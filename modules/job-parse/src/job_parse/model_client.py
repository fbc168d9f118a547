from __future__ import annotations

import logging
from typing import Any

import httpx

from job_parse.config import Settings
from job_parse.errors import ErrorKind, ModelError, excerpt
from job_parse.models import ModelRequest
from job_parse.prompt import SCHEMA_NAME

logger = logging.getLogger(__name__)


def build_request_body(request: ModelRequest, model: str) -> dict[str, Any]:
    return {
        "model": model,
        "input": request.prompt,
        "text": {
            "format": {
                "type": "json_schema",
                "name": SCHEMA_NAME,
                "schema": request.schema,
                "strict": True,
            }
        },
    }


def _auth_headers(credential: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {credential}",
        "Content-Type": "application/json",
    }


def complete(
    request: ModelRequest,
    credential: str,
    settings: Settings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> str:
    if not credential:
        raise ModelError(ErrorKind.NO_CREDENTIAL, "OpenAI key not configured")

    endpoint = f"{settings.openai_base_url}/responses"
    body = build_request_body(request, settings.openai_model)
    try:
        with httpx.Client(
            timeout=settings.model_timeout_seconds,
            follow_redirects=True,
            max_redirects=settings.model_max_redirects,
            transport=transport,
        ) as client:
            response = client.post(endpoint, json=body, headers=_auth_headers(credential))
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning("model request to %s failed: %s", endpoint, exc)
        raise ModelError(
            ErrorKind.MODEL_TRANSPORT, str(exc) or exc.__class__.__name__
        ) from exc

    if not response.is_success:
        logger.warning("model request returned HTTP %s", response.status_code)
        raise ModelError(
            ErrorKind.MODEL_HTTP,
            f"OpenAI returned HTTP {response.status_code}",
            status=response.status_code,
            body_excerpt=excerpt(response.text),
        )

    logger.debug("model reply received (%d chars)", len(response.text))
    return response.text


def ping_models(
    credential: str,
    settings: Settings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> dict[str, object]:
    if not credential:
        return {"openai_http": None}
    try:
        with httpx.Client(
            timeout=settings.diag_timeout_seconds,
            follow_redirects=True,
            max_redirects=settings.model_max_redirects,
            transport=transport,
        ) as client:
            response = client.get(
                f"{settings.openai_base_url}/models",
                headers={"Authorization": f"Bearer {credential}"},
            )
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        return {"openai_http": None, "openai_error": str(exc) or exc.__class__.__name__}
    return {"openai_http": response.status_code}
