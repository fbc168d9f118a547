from __future__ import annotations

import argparse
import json
import logging
import sys

from job_parse.config import Settings, load_settings, mask_secret, resolve_credential
from job_parse.pipeline import handle_diag, handle_extract
from job_parse.storage import OPENAI_KEY_NAME, CredentialStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="job-parse")
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_parser = subparsers.add_parser(
        "extract", help="Fetch a job posting URL and extract structured fields"
    )
    extract_parser.add_argument("url")

    diag_parser = subparsers.add_parser(
        "diag", help="Check credential and connectivity without calling the model"
    )
    diag_parser.add_argument("url", nargs="?", default=None)

    set_key_parser = subparsers.add_parser("set-key", help="Store the OpenAI API key")
    set_key_parser.add_argument("key")

    subparsers.add_parser("clear-key", help="Remove the stored OpenAI API key")
    subparsers.add_parser("healthcheck", help="Validate config and local runtime readiness")

    return parser


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _cmd_extract(settings: Settings, url: str) -> int:
    credential = resolve_credential(settings)
    _print_json(handle_extract(url, settings, credential=credential))
    return 0


def _cmd_diag(settings: Settings, url: str | None) -> int:
    credential = resolve_credential(settings)
    _print_json(handle_diag(url, settings, credential=credential))
    return 0


def _cmd_set_key(settings: Settings, key: str) -> int:
    value = key.strip()
    if not value:
        print("refusing to store an empty key")
        return 1
    with CredentialStore(settings.credential_db_path) as store:
        store.set_credential(OPENAI_KEY_NAME, value)
    print(f"stored key {mask_secret(value)} in {settings.credential_db_path}")
    return 0


def _cmd_clear_key(settings: Settings) -> int:
    with CredentialStore(settings.credential_db_path) as store:
        removed = store.delete_credential(OPENAI_KEY_NAME)
    print("stored key removed" if removed else "no stored key")
    return 0


def _cmd_healthcheck(settings: Settings) -> int:
    try:
        with CredentialStore(settings.credential_db_path) as store:
            credential = resolve_credential(settings, store)
    except Exception as exc:
        print(f"credential db check failed: {exc}")
        return 1

    if not credential:
        print("missing OpenAI key: set OPENAI_API_KEY or run `job-parse set-key`")
        return 1

    print(f"OpenAI key configured: {mask_secret(credential)}")
    print(f"model: {settings.openai_model} via {settings.openai_base_url}")
    print("healthcheck passed")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
        _configure_logging(settings)
        if args.command == "extract":
            return _cmd_extract(settings, args.url)
        if args.command == "diag":
            return _cmd_diag(settings, args.url)
        if args.command == "set-key":
            return _cmd_set_key(settings, args.key)
        if args.command == "clear-key":
            return _cmd_clear_key(settings)
        if args.command == "healthcheck":
            return _cmd_healthcheck(settings)
    except ValueError as exc:
        print(exc)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
