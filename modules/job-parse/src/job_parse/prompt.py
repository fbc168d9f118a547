from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from job_parse.models import (
    MORE_SKILLS_COUNT,
    TOP_SKILLS_COUNT,
    FetchResult,
    ModelRequest,
)

SCHEMA_NAME = "job_fields"
OUTPUT_FIELDS = (
    "company_name",
    "salary_range",
    "top_skills",
    "more_skills",
    "company_homepage",
    "job_title",
    "summary",
)


def domain_hint(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def _skill_array(count: int, description: str) -> dict[str, Any]:
    return {
        "type": "array",
        "minItems": count,
        "maxItems": count,
        "items": {"type": "string", "description": description},
    }


def build_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "additionalProperties": False,
        "required": list(OUTPUT_FIELDS),
        "properties": {
            "company_name": {"type": "string", "description": "Company or organization name"},
            "salary_range": {
                "type": "string",
                "description": (
                    "Salary range as stated (e.g., $140k-$180k + bonus). "
                    "If unavailable, return empty string."
                ),
            },
            "top_skills": _skill_array(TOP_SKILLS_COUNT, "One concise skill keyword/phrase"),
            "more_skills": _skill_array(
                MORE_SKILLS_COUNT, "Additional skills ordered by importance"
            ),
            "company_homepage": {
                "type": "string",
                "description": "Homepage URL if obvious; else empty string",
            },
            "job_title": {"type": "string", "description": "Title being hired for"},
            "summary": {
                "type": "string",
                "description": "Up to ~25 words summary of what the company is looking for",
            },
        },
    }


def build_prompt(fetched: FetchResult) -> str:
    lines = [
        "You are extracting fields from a job posting web page.",
        f"Source URL: {fetched.source_url}",
        f"Source Domain: {domain_hint(fetched.source_url)}",
        f"Page Title: {fetched.title}",
        f"Meta Description: {fetched.meta_description}",
        "",
        "TASKS:",
        "1) company_name: concise name of the hiring company.",
        '2) salary_range: salary as written (e.g., "$140k-$180k + bonus"); if none, empty string.',
        f"3) top_skills: EXACTLY {TOP_SKILLS_COUNT} items, ordered by importance.",
        (
            f"4) more_skills: EXACTLY {MORE_SKILLS_COUNT} items, ordered by importance "
            f"(next {MORE_SKILLS_COUNT} after the top {TOP_SKILLS_COUNT})."
        ),
        (
            "5) company_homepage: official homepage URL if obvious; else empty string. "
            "If not stated but the source appears to be the company's own domain, use its root URL."
        ),
        "6) job_title: concise job title.",
        "7) summary: <= 25 words describing what they seek.",
        "",
        "TEXT CONTENT START",
        fetched.text,
        "TEXT CONTENT END",
        "",
    ]
    return "\n".join(lines)


def build_request(fetched: FetchResult) -> ModelRequest:
    return ModelRequest(prompt=build_prompt(fetched), schema=build_schema())
