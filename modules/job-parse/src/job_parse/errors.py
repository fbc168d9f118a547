from __future__ import annotations

from enum import Enum

BODY_EXCERPT_CHARS = 800


class ErrorKind(str, Enum):
    INVALID_URL = "invalid_url"
    FETCH_FAILED = "fetch_failed"
    BAD_STATUS = "bad_status"
    EMPTY_BODY = "empty_body"
    NOT_HTML_OR_JSON = "not_html_or_json"
    NO_CREDENTIAL = "no_credential"
    MODEL_TRANSPORT = "model_transport"
    MODEL_HTTP = "model_http"
    BAD_PARSE = "bad_parse"
    CANCELLED = "cancelled"
    FORBIDDEN = "forbidden"
    UNEXPECTED = "unexpected"


def excerpt(text: str, limit: int = BODY_EXCERPT_CHARS) -> str:
    return text[:limit]


class JobParseError(Exception):
    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class FetchError(JobParseError):
    def __init__(self, kind: ErrorKind, message: str, *, status: int | None = None):
        super().__init__(kind, message)
        self.status = status


class ModelError(JobParseError):
    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status: int | None = None,
        body_excerpt: str = "",
    ):
        super().__init__(kind, message)
        self.status = status
        self.body_excerpt = excerpt(body_excerpt)


class ParseError(JobParseError):
    def __init__(self, message: str, *, body_excerpt: str = ""):
        super().__init__(ErrorKind.BAD_PARSE, message)
        self.body_excerpt = excerpt(body_excerpt)
