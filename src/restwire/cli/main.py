# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""restwire CLI."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from ..config import HttpSettings, load_http_settings
from ..errors import AbortError, NetworkError, ValidationError, error_category_to_reason
from ..http import HttpClient, HttpResponse, MemoryStorage, create_default_http_client
from ..http.client import HTTP_METHODS
from ..log import setup_logging

CLI_TEXT_TRUNCATION_BYTES = 4096
EXIT_OK = 0
EXIT_HTTP_FAILURE = 1
EXIT_TRANSPORT_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Issue a single request through the restwire pipeline")
    parser.add_argument("method", type=str.upper, choices=HTTP_METHODS, help="HTTP method")
    parser.add_argument("url", help="URL or URL template (relative to --base-url)")
    parser.add_argument("--base-url", default=None, help="Base URL prefixed to relative templates")
    parser.add_argument("--param", action="append", default=[], metavar="NAME=VALUE", help="Path parameter for {NAME}")
    parser.add_argument("--query", action="append", default=[], metavar="KEY=VALUE", help="Query parameter (repeatable)")
    parser.add_argument("--header", action="append", default=[], metavar="NAME:VALUE", help="Request header (repeatable)")
    parser.add_argument("--data", default=None, help="JSON request body")
    parser.add_argument("--token", default=None, help="Auth token sent with the configured auth header")
    parser.add_argument("--json", action="store_true", help="Output JSON instead of a human-friendly summary")
    parser.add_argument("--ignore-ssl-errors", action="store_true", help="Skip TLS verification")
    parser.add_argument("--log-level", default=None, help="Logging level (default from RESTWIRE_LOG_LEVEL)")
    return parser


def _split_pairs(values: list[str], separator: str) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for raw in values:
        key, sep, value = raw.partition(separator)
        if not sep or not key.strip():
            raise ValidationError(f"Expected KEY{separator}VALUE, got {raw!r}")
        pairs.append((key.strip(), value.strip() if separator == ":" else value))
    return pairs


def _truncate_text_bytes(text: str, max_bytes: int) -> str:
    raw = text.encode("utf-8")
    if len(raw) <= max_bytes:
        return text
    suffix = "...[truncated]"
    suffix_bytes = suffix.encode("utf-8")
    keep = max_bytes - len(suffix_bytes)
    if keep <= 0:
        return suffix_bytes[:max_bytes].decode("utf-8", errors="ignore")
    prefix = raw[:keep].decode("utf-8", errors="ignore")
    return prefix + suffix


def _truncate_for_cli(value: Any, *, max_bytes: int) -> Any:
    if isinstance(value, str):
        return _truncate_text_bytes(value, max_bytes)
    if isinstance(value, (bytes, bytearray)):
        return f"<binary data: {len(value)} bytes>"
    if isinstance(value, dict):
        return {k: _truncate_for_cli(v, max_bytes=max_bytes) for k, v in value.items()}
    if isinstance(value, list):
        return [_truncate_for_cli(v, max_bytes=max_bytes) for v in value]
    return value


def _print_json(response: HttpResponse) -> None:
    payload = _truncate_for_cli(response.to_dict(), max_bytes=CLI_TEXT_TRUNCATION_BYTES)
    json.dump(payload, sys.stdout, indent=2, sort_keys=True, default=str)
    sys.stdout.write("\n")


def _pretty_print(response: HttpResponse) -> None:
    marker = "ok" if response.success else "failed"
    print(f"[restwire] {response.status} {response.status_text} ({marker})")
    if response.url:
        print(f"URL: {response.url}")
    content_type = response.headers.get("content-type")
    if content_type:
        print(f"Content-Type: {content_type}")
    body = response.data if response.success else response.error
    if body is None:
        return
    if isinstance(body, (dict, list)):
        body = json.dumps(body, indent=2, sort_keys=True, default=str)
    print(_truncate_for_cli(body, max_bytes=CLI_TEXT_TRUNCATION_BYTES))


async def _run(client: HttpClient, args: argparse.Namespace) -> HttpResponse:
    async with client:
        if args.token:
            await client.set_token(args.token)
        options: dict[str, Any] = {
            "params": dict(_split_pairs(args.param, "=")),
            "headers": dict(_split_pairs(args.header, ":")),
        }
        query = _split_pairs(args.query, "=") or None
        body = json.loads(args.data) if args.data is not None else None
        return await client.request(client.build_options(args.method, args.url, query=query, body=body, **options))


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    settings: HttpSettings = load_http_settings()
    if args.ignore_ssl_errors:
        settings.verify_ssl = False

    client = create_default_http_client(settings, base_url=args.base_url, auth_detect_token=[MemoryStorage()])
    try:
        response = asyncio.run(_run(client, args))
    except (ValidationError, json.JSONDecodeError) as exc:
        parser.error(str(exc))
    except AbortError as exc:
        print(f"[restwire] aborted: {exc}", file=sys.stderr)
        return EXIT_TRANSPORT_FAILURE
    except NetworkError as exc:
        print(f"[restwire] {error_category_to_reason(exc.category)}: {exc}", file=sys.stderr)
        return EXIT_TRANSPORT_FAILURE

    if args.json:
        _print_json(response)
    else:
        _pretty_print(response)

    return EXIT_OK if response.success else EXIT_HTTP_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
