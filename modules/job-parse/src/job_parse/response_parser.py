from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import urlparse

from job_parse.errors import ParseError
from job_parse.models import (
    MORE_SKILLS_COUNT,
    SUMMARY_MAX_CHARS,
    TOP_SKILLS_COUNT,
    ExtractedFields,
)

_CODE_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)
_HOST_LIKE_RE = re.compile(r"^[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)+(/\S*)?$")


class _Absent:
    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()

EnvelopeReader = Callable[[Mapping[str, Any]], dict[str, Any] | None]


def dig(node: Any, *path: str | int) -> Any:
    current = node
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return ABSENT
            current = current[step]
        else:
            if not isinstance(current, Mapping) or step not in current:
                return ABSENT
            current = current[step]
    return current


def _unwrap_code_fence(text: str) -> str:
    stripped = text.strip()
    match = _CODE_FENCE_RE.match(stripped)
    return match.group(1).strip() if match else stripped


def decode_structured(value: Any) -> dict[str, Any] | None:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, str):
        try:
            decoded = json.loads(_unwrap_code_fence(value))
        except (ValueError, RecursionError):
            return None
        return decoded if isinstance(decoded, dict) else None
    return None


def _read_output_json(envelope: Mapping[str, Any]) -> dict[str, Any] | None:
    value = dig(envelope, "output", 0, "content", 0, "json")
    return dict(value) if isinstance(value, Mapping) else None


def _read_output_text(envelope: Mapping[str, Any]) -> dict[str, Any] | None:
    return decode_structured(dig(envelope, "output", 0, "content", 0, "text"))


def _read_output_text_shortcut(envelope: Mapping[str, Any]) -> dict[str, Any] | None:
    return decode_structured(dig(envelope, "output_text"))


def _read_chat_choices(envelope: Mapping[str, Any]) -> dict[str, Any] | None:
    return decode_structured(dig(envelope, "choices", 0, "message", "content"))


ENVELOPE_READERS: tuple[EnvelopeReader, ...] = (
    _read_output_json,
    _read_output_text,
    _read_output_text_shortcut,
    _read_chat_choices,
)


def find_payload(
    envelope: Any, readers: tuple[EnvelopeReader, ...] = ENVELOPE_READERS
) -> dict[str, Any] | None:
    if not isinstance(envelope, Mapping):
        return None
    for reader in readers:
        payload = reader(envelope)
        if payload is not None:
            return payload
    return None


def _as_text(value: Any) -> str:
    if value is None or value is ABSENT:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def _field(payload: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in payload:
            return payload[name]
    return ABSENT


def fixed_length(values: Any, size: int) -> tuple[str, ...]:
    items = [_as_text(item) for item in values] if isinstance(values, list) else []
    items = items[:size]
    items.extend([""] * (size - len(items)))
    return tuple(items)


def _homepage_from_model(value: str) -> str:
    if not value:
        return ""
    if not re.match(r"^https?://", value, re.IGNORECASE):
        if not _HOST_LIKE_RE.match(value):
            return ""
        value = f"https://{value}"
    try:
        parsed = urlparse(value)
    except ValueError:
        return ""
    return value if parsed.hostname else ""


def fallback_homepage(source_url: str) -> str:
    try:
        parsed = urlparse(source_url)
    except ValueError:
        return ""
    if not parsed.hostname:
        return ""
    host = parsed.hostname
    if ":" in host:
        host = f"[{host}]"
    scheme = parsed.scheme or "https"
    return f"{scheme}://{host}/"


def normalize_fields(payload: Mapping[str, Any], source_url: str = "") -> ExtractedFields:
    homepage = _homepage_from_model(
        _as_text(_field(payload, "company_homepage", "companyHomepage"))
    )
    if not homepage and source_url:
        homepage = fallback_homepage(source_url)

    return ExtractedFields(
        company_name=_as_text(_field(payload, "company_name", "companyName")),
        salary_range=_as_text(_field(payload, "salary_range", "salaryRange")),
        top_skills=fixed_length(_field(payload, "top_skills", "topSkills"), TOP_SKILLS_COUNT),
        more_skills=fixed_length(_field(payload, "more_skills", "moreSkills"), MORE_SKILLS_COUNT),
        company_homepage=homepage,
        job_title=_as_text(_field(payload, "job_title", "jobTitle")),
        summary=_as_text(_field(payload, "summary"))[:SUMMARY_MAX_CHARS],
    )


def parse_reply(raw_reply: str | bytes, source_url: str = "") -> ExtractedFields:
    text = raw_reply.decode("utf-8", errors="replace") if isinstance(raw_reply, bytes) else raw_reply
    try:
        envelope = json.loads(text)
    except (ValueError, RecursionError):
        envelope = None

    payload = find_payload(envelope)
    if payload is None:
        raise ParseError("Could not parse OpenAI response", body_excerpt=text)
    return normalize_fields(payload, source_url)
