from __future__ import annotations

import json
import re
from typing import Any

from bs4 import BeautifulSoup

from job_parse.errors import ErrorKind, FetchError
from job_parse.models import FetchResult, RawPage

MAX_TEXT_CHARS = 300_000
MAX_JSON_DEPTH = 64

JSON_TEXT_KEY_TOKENS = (
    "description",
    "content",
    "body",
    "responsibilit",
    "qualif",
    "summary",
    "title",
)

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_META_DESCRIPTION_RES = (
    re.compile(
        r"<meta[^>]+name=[\"']description[\"'][^>]*content=[\"']([^\"']+)",
        re.IGNORECASE,
    ),
    re.compile(
        r"<meta[^>]+content=[\"']([^\"']+)[\"'][^>]*name=[\"']description[\"']",
        re.IGNORECASE,
    ),
)
_SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style\b[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_HORIZONTAL_SPACE_RE = re.compile(r"[ \t]+")
_MULTI_SPACE_RE = re.compile(r"\s{2,}")


def decode_body(page: RawPage) -> str:
    encoding = page.encoding or "utf-8"
    try:
        return page.body.decode(encoding, errors="replace")
    except LookupError:
        return page.body.decode("utf-8", errors="replace")


def strip_tags(markup: str) -> str:
    if "<" not in markup and "&" not in markup:
        return markup
    return BeautifulSoup(markup, "html.parser").get_text(" ")


def normalize_whitespace(text: str) -> str:
    collapsed = _HORIZONTAL_SPACE_RE.sub(" ", text)
    return _MULTI_SPACE_RE.sub("\n", collapsed.strip())


def truncate_text(text: str, limit: int = MAX_TEXT_CHARS) -> str:
    return text[:limit] if len(text) > limit else text


def extract_title(markup: str) -> str:
    match = _TITLE_RE.search(markup)
    if not match:
        return ""
    return normalize_whitespace(strip_tags(match.group(1))).replace("\n", " ")


def extract_meta_description(markup: str) -> str:
    for pattern in _META_DESCRIPTION_RES:
        match = pattern.search(markup)
        if match:
            return normalize_whitespace(strip_tags(match.group(1))).replace("\n", " ")
    return ""


def looks_like_json(content_type: str, text: str) -> bool:
    if "json" in content_type.lower():
        return True
    return text.lstrip()[:1] in ("{", "[")


def looks_like_html(text: str) -> bool:
    head = text.lstrip()[:16].lower()
    return head.startswith("<!doctype") or head.startswith("<html")


def _key_matches(key: str | None) -> bool:
    if not key:
        return False
    lowered = key.lower()
    return any(token in lowered for token in JSON_TEXT_KEY_TOKENS)


def collect_json_text(document: Any, max_depth: int = MAX_JSON_DEPTH) -> list[str]:
    collected: list[str] = []
    seen: set[str] = set()
    stack: list[tuple[str | None, Any, int]] = [(None, document, 0)]

    while stack:
        key, value, depth = stack.pop()
        if depth > max_depth:
            continue
        if isinstance(value, dict):
            children = [(str(child_key), child, depth + 1) for child_key, child in value.items()]
            stack.extend(reversed(children))
        elif isinstance(value, list):
            stack.extend(reversed([(key, child, depth + 1) for child in value]))
        elif isinstance(value, str) and _key_matches(key):
            if value.strip() and value not in seen:
                seen.add(value)
                collected.append(value)

    return collected


def _json_text(text: str) -> str | None:
    try:
        document = json.loads(text)
    except (ValueError, RecursionError):
        return None
    if not isinstance(document, (dict, list)):
        return None
    candidates = collect_json_text(document)
    if not candidates:
        return None
    return normalize_whitespace(strip_tags("\n\n".join(candidates)))


def html_to_text(markup: str) -> str:
    scrubbed = _SCRIPT_RE.sub(" ", markup)
    scrubbed = _STYLE_RE.sub(" ", scrubbed)
    scrubbed = _COMMENT_RE.sub(" ", scrubbed)
    return normalize_whitespace(strip_tags(scrubbed))


def extract_page(page: RawPage, max_chars: int = MAX_TEXT_CHARS) -> FetchResult:
    markup = decode_body(page)
    title = extract_title(markup)
    meta_description = extract_meta_description(markup)

    text: str | None = None
    if looks_like_json(page.content_type, markup):
        text = _json_text(markup)

    if text is None:
        content_type = page.content_type.lower()
        if content_type and "text/html" not in content_type and not looks_like_html(markup):
            raise FetchError(ErrorKind.NOT_HTML_OR_JSON, "Content is not HTML or JSON.")
        text = html_to_text(markup)

    return FetchResult(
        source_url=page.url,
        title=title,
        meta_description=meta_description,
        text=truncate_text(text, max_chars),
    )
