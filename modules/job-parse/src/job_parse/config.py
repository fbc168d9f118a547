from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from job_parse.storage import OPENAI_KEY_NAME, CredentialStore

MODULE_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CREDENTIAL_DB_PATH = MODULE_ROOT / "data" / "credentials.sqlite"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 JobParse/1.0"
)
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


class Settings(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    openai_api_key: str = ""
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    fetch_timeout_seconds: float = Field(default=20.0, gt=0.0)
    model_timeout_seconds: float = Field(default=25.0, gt=0.0)
    diag_timeout_seconds: float = Field(default=10.0, gt=0.0)
    fetch_max_redirects: int = Field(default=5, ge=0)
    model_max_redirects: int = Field(default=3, ge=0)
    max_text_chars: int = Field(default=300_000, ge=1)
    user_agent: str = DEFAULT_USER_AGENT
    credential_db_path: Path = Field(default=DEFAULT_CREDENTIAL_DB_PATH)
    log_level: str = "WARNING"

    @field_validator("openai_base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("OPENAI_BASE_URL must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {value!r}")
        return level


def _env_value(environ: Mapping[str, str], key: str) -> str:
    return environ.get(key, "").strip()


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    source = os.environ if environ is None else environ
    payload = {
        "openai_api_key": _env_value(source, "OPENAI_API_KEY"),
        "openai_model": _env_value(source, "OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
        "openai_base_url": _env_value(source, "OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL,
        "fetch_timeout_seconds": _env_value(source, "FETCH_TIMEOUT_SECONDS") or "20",
        "model_timeout_seconds": _env_value(source, "MODEL_TIMEOUT_SECONDS") or "25",
        "diag_timeout_seconds": _env_value(source, "DIAG_TIMEOUT_SECONDS") or "10",
        "fetch_max_redirects": _env_value(source, "FETCH_MAX_REDIRECTS") or "5",
        "model_max_redirects": _env_value(source, "MODEL_MAX_REDIRECTS") or "3",
        "max_text_chars": _env_value(source, "MAX_TEXT_CHARS") or "300000",
        "user_agent": _env_value(source, "USER_AGENT") or DEFAULT_USER_AGENT,
        "credential_db_path": Path(
            _env_value(source, "CREDENTIAL_DB_PATH") or DEFAULT_CREDENTIAL_DB_PATH
        ),
        "log_level": _env_value(source, "LOG_LEVEL") or "WARNING",
    }
    try:
        return Settings(**payload)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


def resolve_credential(settings: Settings, store: CredentialStore | None = None) -> str:
    if settings.openai_api_key:
        return settings.openai_api_key
    if store is not None:
        return store.get_credential(OPENAI_KEY_NAME) or ""
    if not settings.credential_db_path.exists():
        return ""
    with CredentialStore(settings.credential_db_path) as opened:
        return opened.get_credential(OPENAI_KEY_NAME) or ""


def mask_secret(value: str, visible_prefix: int = 3, visible_suffix: int = 2) -> str:
    if not value:
        return ""
    if len(value) <= visible_prefix + visible_suffix:
        return "*" * len(value)
    hidden = "*" * (len(value) - visible_prefix - visible_suffix)
    return f"{value[:visible_prefix]}{hidden}{value[-visible_suffix:]}"
