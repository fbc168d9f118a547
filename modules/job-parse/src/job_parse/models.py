from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

TOP_SKILLS_COUNT = 5
MORE_SKILLS_COUNT = 10
SUMMARY_MAX_CHARS = 180


@dataclass(frozen=True)
class RawPage:
    url: str
    content_type: str
    body: bytes
    encoding: str | None = None


@dataclass(frozen=True)
class FetchResult:
    source_url: str
    title: str
    meta_description: str
    text: str


@dataclass(frozen=True)
class ModelRequest:
    prompt: str
    schema: dict[str, Any]


@dataclass(frozen=True)
class ExtractedFields:
    company_name: str = ""
    salary_range: str = ""
    top_skills: tuple[str, ...] = ("",) * TOP_SKILLS_COUNT
    more_skills: tuple[str, ...] = ("",) * MORE_SKILLS_COUNT
    company_homepage: str = ""
    job_title: str = ""
    summary: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "company_name": self.company_name,
            "salary_range": self.salary_range,
            "top_skills": list(self.top_skills),
            "more_skills": list(self.more_skills),
            "company_homepage": self.company_homepage,
            "job_title": self.job_title,
            "summary": self.summary,
        }


@dataclass(frozen=True)
class CallerIdentity:
    logged_in: bool
    nonce_ok: bool

    @property
    def authorized(self) -> bool:
        return self.logged_in and self.nonce_ok


LOCAL_CALLER = CallerIdentity(logged_in=True, nonce_ok=True)


@dataclass(frozen=True)
class Fetched:
    result: FetchResult


@dataclass(frozen=True)
class FetchFailed:
    kind: str
    message: str


@dataclass(frozen=True)
class ModelFailed:
    kind: str
    message: str
    status: int | None = None
    body_excerpt: str = ""


@dataclass(frozen=True)
class ParseFailed:
    excerpt: str
    message: str = "Could not parse model response"


@dataclass(frozen=True)
class Cancelled:
    stage: str


@dataclass(frozen=True)
class Success:
    fields: ExtractedFields
    source: FetchResult | None = field(default=None, compare=False)


PipelineOutcome = Union[Fetched, FetchFailed, ModelFailed, ParseFailed, Cancelled, Success]
