import json
import threading

import httpx
import pytest

from job_parse.config import Settings
from job_parse.models import CallerIdentity, Cancelled, Success
from job_parse.pipeline import handle_diag, handle_extract, run_extraction

SOURCE_URL = "https://jobs.example.com/123"
FIELD_KEYS = {
    "company_name",
    "salary_range",
    "top_skills",
    "more_skills",
    "company_homepage",
    "job_title",
    "summary",
}

PAGE_HTML = (
    "<!DOCTYPE html><html><head><title>Senior Engineer — Example Co</title>"
    '<meta name="description" content="Example Co is hiring">'
    "<script>trackVisitor()</script></head>"
    "<body><h1>Senior Engineer</h1><p>Python, Kubernetes and care.</p></body></html>"
)


def _settings(tmp_path) -> Settings:
    return Settings(credential_db_path=tmp_path / "credentials.sqlite")


def _router(
    requests: list[httpx.Request],
    *,
    page: httpx.Response | None = None,
    model: httpx.Response | None = None,
) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.host == "api.openai.com":
            return model or httpx.Response(200, json={"output_text": "{}"})
        return page or httpx.Response(200, headers={"content-type": "text/html"}, text=PAGE_HTML)

    return httpx.MockTransport(handler)


def _model_reply(payload: dict) -> httpx.Response:
    return httpx.Response(200, json={"output_text": json.dumps(payload)})


def test_extract_end_to_end_with_sparse_model_reply(tmp_path) -> None:
    requests: list[httpx.Request] = []
    transport = _router(requests, model=_model_reply({"company_name": "Example Co", "job_title": "Senior Engineer"}))

    result = handle_extract(SOURCE_URL, _settings(tmp_path), credential="sk-test", transport=transport)

    assert result["stage"] == "done"
    assert result["ok"] is True
    assert result["company_name"] == "Example Co"
    assert result["job_title"] == "Senior Engineer"
    assert result["top_skills"] == [""] * 5
    assert result["more_skills"] == [""] * 10
    assert result["company_homepage"] == "https://jobs.example.com/"
    assert "error" not in result

    model_request = json.loads(requests[-1].content)
    assert "Page Title: Senior Engineer — Example Co" in model_request["input"]
    assert "Python, Kubernetes and care." in model_request["input"]
    assert "trackVisitor" not in model_request["input"]
    json.dumps(result)


def test_run_extraction_returns_success_with_source(tmp_path) -> None:
    outcome = run_extraction(SOURCE_URL, _settings(tmp_path), "sk-test", transport=_router([]))

    assert isinstance(outcome, Success)
    assert outcome.source is not None
    assert outcome.source.title == "Senior Engineer — Example Co"
    assert outcome.source.meta_description == "Example Co is hiring"


def test_json_ats_endpoint_flows_through(tmp_path) -> None:
    requests: list[httpx.Request] = []
    page = httpx.Response(
        200,
        headers={"content-type": "application/json"},
        json={"title": "Data Engineer", "content": "Own the warehouse", "absolute_url": SOURCE_URL},
    )

    result = handle_extract(SOURCE_URL, _settings(tmp_path), credential="sk-test", transport=_router(requests, page=page))

    assert result["stage"] == "done"
    prompt = json.loads(requests[-1].content)["input"]
    assert "TEXT CONTENT START\nData Engineer\nOwn the warehouse\nTEXT CONTENT END" in prompt


def test_invalid_url_reports_fetch_stage_without_network(tmp_path) -> None:
    requests: list[httpx.Request] = []

    result = handle_extract("jobs.example.com/123", _settings(tmp_path), credential="sk-test", transport=_router(requests))

    assert result["stage"] == "fetch"
    assert result["ok"] is False
    assert result["error"] == "invalid_url"
    assert FIELD_KEYS <= set(result)
    assert requests == []


def test_missing_url_is_invalid_input(tmp_path) -> None:
    result = handle_extract(None, _settings(tmp_path), credential="sk-test", transport=_router([]))

    assert result["stage"] == "fetch"
    assert result["error"] == "invalid_url"


def test_missing_credential_reports_before_fetching(tmp_path) -> None:
    requests: list[httpx.Request] = []

    result = handle_extract(SOURCE_URL, _settings(tmp_path), credential="", transport=_router(requests))

    assert result["stage"] == "openai"
    assert result["error"] == "no_credential"
    assert requests == []


def test_bad_page_status_reports_fetch_stage(tmp_path) -> None:
    page = httpx.Response(503, text="maintenance")

    result = handle_extract(SOURCE_URL, _settings(tmp_path), credential="sk-test", transport=_router([], page=page))

    assert result["stage"] == "fetch"
    assert result["error"] == "bad_status"
    assert result["message"] == "URL returned HTTP 503"


def test_unsupported_content_reports_fetch_stage(tmp_path) -> None:
    page = httpx.Response(200, headers={"content-type": "application/pdf"}, content=b"%PDF-1.7 ...")

    result = handle_extract(SOURCE_URL, _settings(tmp_path), credential="sk-test", transport=_router([], page=page))

    assert result["stage"] == "fetch"
    assert result["error"] == "not_html_or_json"


def test_model_http_error_reports_openai_stage(tmp_path) -> None:
    model = httpx.Response(429, text="rate limited " * 200)

    result = handle_extract(SOURCE_URL, _settings(tmp_path), credential="sk-test", transport=_router([], model=model))

    assert result["stage"] == "openai"
    assert result["ok"] is False
    assert result["error"] == "model_http"
    assert result["status"] == 429
    assert len(result["body_excerpt"]) == 800


def test_unparseable_reply_reports_parse_stage(tmp_path) -> None:
    model = httpx.Response(200, json={"id": "resp_1", "output": []})

    result = handle_extract(SOURCE_URL, _settings(tmp_path), credential="sk-test", transport=_router([], model=model))

    assert result["stage"] == "parse"
    assert result["error"] == "bad_parse"
    assert "resp_1" in result["body_excerpt"]
    assert result["top_skills"] == [""] * 5


def test_unauthorized_caller_is_rejected(tmp_path) -> None:
    requests: list[httpx.Request] = []
    caller = CallerIdentity(logged_in=True, nonce_ok=False)

    result = handle_extract(SOURCE_URL, _settings(tmp_path), credential="sk-test", caller=caller, transport=_router(requests))

    assert result["stage"] == "fatal"
    assert result["error"] == "forbidden"
    assert requests == []


def test_unexpected_failure_is_reported_as_fatal(tmp_path, monkeypatch) -> None:
    def explode(_):
        raise RuntimeError("boom")

    monkeypatch.setattr("job_parse.pipeline.build_request", explode)

    result = handle_extract(SOURCE_URL, _settings(tmp_path), credential="sk-test", transport=_router([]))

    assert result["stage"] == "fatal"
    assert result["ok"] is False
    assert result["error"] == "unexpected"
    assert "boom" in result["message"]
    json.dumps(result)


def test_cancelled_extraction_stops_before_next_stage(tmp_path) -> None:
    requests: list[httpx.Request] = []
    cancel_event = threading.Event()
    cancel_event.set()

    result = handle_extract(
        SOURCE_URL,
        _settings(tmp_path),
        credential="sk-test",
        transport=_router(requests),
        cancel_event=cancel_event,
    )

    assert result["stage"] == "fatal"
    assert result["error"] == "cancelled"
    assert requests == []


def test_diag_reports_key_and_connectivity(tmp_path) -> None:
    requests: list[httpx.Request] = []
    page = httpx.Response(200, headers={"content-type": "text/html"}, content=b"<html>ok</html>")

    result = handle_diag(SOURCE_URL, _settings(tmp_path), credential="sk-test", transport=_router(requests, page=page, model=httpx.Response(200, json={"data": []})))

    assert result == {
        "logged_in": True,
        "nonce_ok": True,
        "openai_key_present": True,
        "openai_http": 200,
        "url_http": 200,
        "url_ct": "text/html",
        "url_len": 15,
    }
    assert all(request.url.path != "/v1/responses" for request in requests)


def test_diag_without_key_or_url_skips_network(tmp_path) -> None:
    requests: list[httpx.Request] = []

    result = handle_diag(None, _settings(tmp_path), credential="", transport=_router(requests))

    assert result == {"logged_in": True, "nonce_ok": True, "openai_key_present": False, "openai_http": None}
    assert requests == []


def test_diag_for_unauthorized_caller_skips_network(tmp_path) -> None:
    requests: list[httpx.Request] = []
    caller = CallerIdentity(logged_in=False, nonce_ok=False)

    result = handle_diag(SOURCE_URL, _settings(tmp_path), credential="sk-test", caller=caller, transport=_router(requests))

    assert result["logged_in"] is False
    assert result["openai_http"] is None
    assert requests == []


@pytest.mark.parametrize(
    "url",
    ["http://bad_host_☃/", "http://a\x00b.com/", "https://jobs.example.com/" + "a" * 70_000],
)
def test_unparseable_url_reports_invalid_input(tmp_path, url: str) -> None:
    requests: list[httpx.Request] = []

    result = handle_extract(url, _settings(tmp_path), credential="sk-test", transport=_router(requests))

    assert result["stage"] == "fetch"
    assert result["error"] == "invalid_url"
    assert requests == []


def test_diag_reports_unparseable_url_in_band(tmp_path) -> None:
    result = handle_diag(
        "http://a\x00b.com/",
        _settings(tmp_path),
        credential="sk-test",
        transport=_router([], model=httpx.Response(200, json={"data": []})),
    )

    assert result["openai_http"] == 200
    assert "url_error" in result
    json.dumps(result)


def test_diag_unexpected_failure_is_reported_in_band(tmp_path, monkeypatch) -> None:
    def explode(*_, **__):
        raise RuntimeError("check exploded")

    monkeypatch.setattr("job_parse.pipeline.ping_models", explode)

    result = handle_diag(SOURCE_URL, _settings(tmp_path), credential="sk-test", transport=_router([]))

    assert result["error"] == "unexpected"
    assert "check exploded" in result["message"]
    assert result["openai_key_present"] is True


def test_run_extraction_returns_cancelled_outcome(tmp_path) -> None:
    requests: list[httpx.Request] = []
    cancel_event = threading.Event()
    cancel_event.set()

    outcome = run_extraction(
        SOURCE_URL, _settings(tmp_path), "sk-test", transport=_router(requests), cancel_event=cancel_event
    )

    assert outcome == Cancelled(stage="fetch")
    assert requests == []
