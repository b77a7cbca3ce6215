#!/usr/bin/env python3
"""WordPress REST API CLI: запросы к сайту из config/wp-sites.yml (get/post/put/patch/delete/upload)."""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import os
import sys
import uuid
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

# local imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
load_dotenv()

from errors import CONFIG_ERROR  # noqa: E402
from exit_codes import EXIT_FAILURE, EXIT_RETRY_LATER, EXIT_SUCCESS  # noqa: E402
from logging_setup import set_run_id, setup_app_logging  # noqa: E402
from wpapi.client import WPApiClient  # noqa: E402
from wpapi.config import load_config, load_sites_list  # noqa: E402
from wpapi.executor import sleep_backoff  # noqa: E402
from wpapi.oauth import OAuth1Setup  # noqa: E402
from wpapi.paging import fetch_all  # noqa: E402
from wpapi.taxonomy import (  # noqa: E402
    ConfigurationError,
    OperationCancelled,
    RetryableError,
    WPApiError,
    WPClientError,
)

LOG = logging.getLogger("wp_api.cli")

REQUEST_COMMANDS = ("get", "post", "put", "patch", "delete", "upload")


def _configure_utf8_stdio() -> None:
    for stream in (sys.stdout, sys.stderr):
        reconfigure = getattr(stream, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(encoding="utf-8")


def _print_err_utf8(text: str) -> None:
    sys.stderr.buffer.write(text.encode("utf-8", errors="replace"))
    sys.stderr.buffer.write(b"\n")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Запросы к WordPress REST API")
    p.add_argument(
        "command",
        choices=["list-sites", "oauth1-setup", *REQUEST_COMMANDS],
        help="list-sites — список сайтов из конфига; oauth1-setup — получить access token; "
        "get/post/put/patch/delete/upload — запрос к API",
    )
    p.add_argument("path", nargs="?", default=None, help="Путь ресурса, например wp/v2/posts/5 (или полный URL)")
    p.add_argument("--site", type=str, help="site_id из конфига (по умолчанию первый сайт)")
    p.add_argument(
        "--config",
        type=str,
        default=None,
        help="Путь к config/wp-sites.yml (по умолчанию config/wp-sites.yml в корне проекта)",
    )
    p.add_argument("--data", type=str, default=None, help="JSON-объект с параметрами/телом запроса")
    p.add_argument("--context", choices=["view", "edit", "embed"], default=None)
    p.add_argument("--page", type=int, default=None)
    p.add_argument("--per-page", type=int, default=10)
    p.add_argument("--all", action="store_true", help="get: обойти все страницы коллекции")
    p.add_argument("--no-force", action="store_true", help="delete: в корзину, без force=true")
    p.add_argument("--file", type=str, default=None, help="upload: путь к файлу")
    p.add_argument("--content-type", type=str, default=None, help="upload: MIME-тип (по умолчанию по расширению)")
    p.add_argument("--wait", action="store_true", help="пауза перед повтором (Retry-After или exponential backoff)")
    p.add_argument("--endpoint", type=str, default=None, help="oauth1-setup: корень API сайта")
    p.add_argument("-v", "--verbose", action="store_true", help="дублировать лог (DEBUG) в stderr")
    return p


def _load_data(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"--data: невалидный JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("--data должен быть JSON-объектом")
    return data


def _config_path(args: argparse.Namespace) -> Path:
    project_root = Path(__file__).resolve().parent
    return Path(args.config) if args.config else project_root / "config" / "wp-sites.yml"


def run_list_sites(args: argparse.Namespace) -> int:
    config_path = _config_path(args)
    if not config_path.exists():
        _print_err_utf8(f"Error: config not found: {config_path}")
        return EXIT_FAILURE
    try:
        sites = load_sites_list(config_path)
    except ConfigurationError as e:
        LOG.error("Конфиг: %s", e, extra={"error_code": CONFIG_ERROR})
        _print_err_utf8(f"Error: {e}")
        return EXIT_FAILURE
    if not sites:
        _print_err_utf8("Error: no sites in config")
        return EXIT_FAILURE
    for s in sites:
        print(json.dumps({
            "site_id": (s.get("site_id") or "").strip(),
            "endpoint": (s.get("endpoint") or "").strip(),
            "name": (s.get("name") or "").strip(),
            "auth": (s.get("auth") or "oauth1").strip(),
        }))
    return EXIT_SUCCESS


def run_oauth1_setup(args: argparse.Namespace) -> int:
    """Интерактивно получить access token OAuth1 и вывести его для env."""
    endpoint = args.endpoint or os.environ.get("WP_OAUTH1_ENDPOINT", "")
    setup = OAuth1Setup(
        endpoint,
        os.environ.get("WP_OAUTH1_CLIENT_KEY", ""),
        os.environ.get("WP_OAUTH1_CLIENT_SECRET", ""),
    )
    print(f"Open in browser and authorize: {setup.authorization_url()}")
    verifier = input("Verifier: ").strip()
    token = setup.fetch_access_token(verifier)
    print(json.dumps({
        "access_token": token.get("oauth_token"),
        "access_token_secret": token.get("oauth_token_secret"),
    }, indent=2))
    return EXIT_SUCCESS


def _execute(client: WPApiClient, args: argparse.Namespace, run_id: str) -> Any:
    path = args.path
    data = _load_data(args.data)
    if args.command == "get":
        context = args.context or "view"
        if args.all:
            return {"items": fetch_all(client, path, per_page=args.per_page, context=context, params=data, run_id=run_id)}
        client.fetch(path, context=context, page=args.page, page_length=args.per_page, params=data, run_id=run_id)
    elif args.command == "post":
        client.create(path, data, context=args.context or "view", run_id=run_id)
    elif args.command == "put":
        client.replace(path, data, context=args.context or "edit", run_id=run_id)
    elif args.command == "patch":
        client.patch(path, data, context=args.context or "edit", run_id=run_id)
    elif args.command == "delete":
        client.remove(path, force=not args.no_force, run_id=run_id)
    elif args.command == "upload":
        if not args.file:
            raise ConfigurationError("upload: укажите --file")
        file_path = Path(args.file)
        try:
            body = file_path.read_bytes()
        except OSError as e:
            raise ConfigurationError(f"upload: не удалось прочитать {file_path}: {e}") from e
        content_type = args.content_type or mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        client.upload(path, file_path.name, content_type, body, run_id=run_id)
    return {
        "data": client.as_array(),
        "total": client.total_records,
        "total_pages": client.total_pages,
        "allow": sorted(client.allowed_methods) if client.allowed_methods is not None else None,
    }


def run_request(args: argparse.Namespace, run_id: str) -> int:
    if not args.path:
        _print_err_utf8(f"Error: {args.command} requires a resource path")
        return EXIT_FAILURE
    try:
        cfg = load_config(config_path=_config_path(args))
        site = cfg.get_site(args.site) if args.site else cfg.sites[0]
        client = WPApiClient.from_config(site, backoff=sleep_backoff if args.wait else None)
    except ConfigurationError as e:
        LOG.error("Конфиг: %s", e, extra={"error_code": CONFIG_ERROR})
        _print_err_utf8(f"Error: {e}")
        return EXIT_FAILURE

    with client:
        try:
            out = _execute(client, args, run_id)
        except RetryableError as e:
            _print_err_utf8(f"Error ({e.error_code}, retried {client.retries}): {e}")
            return EXIT_RETRY_LATER
        except (WPApiError, OperationCancelled, ConfigurationError) as e:
            _print_err_utf8(f"Error ({e.error_code}): {e}")
            return EXIT_FAILURE
    print(json.dumps({"run_id": run_id, "site_id": site.site_id, **out}, ensure_ascii=False, indent=2))
    return EXIT_SUCCESS


def main() -> int:
    _configure_utf8_stdio()
    project_root = Path(__file__).resolve().parent
    run_id = str(uuid.uuid4())[:8]
    logs_dir = project_root / "logs"
    args = build_parser().parse_args()
    if args.verbose:
        setup_app_logging(logs_dir, level=logging.DEBUG, run_id=run_id, console_level=logging.DEBUG)
    else:
        setup_app_logging(logs_dir, run_id=run_id)
    set_run_id(run_id)

    if args.command == "list-sites":
        return run_list_sites(args)

    if args.command == "oauth1-setup":
        try:
            return run_oauth1_setup(args)
        except WPClientError as e:
            LOG.error("OAuth1 setup: %s", e, extra={"error_code": e.error_code})
            _print_err_utf8(f"Error ({e.error_code}): {e}")
            return EXIT_FAILURE

    return run_request(args, run_id)


if __name__ == "__main__":
    sys.exit(main())
