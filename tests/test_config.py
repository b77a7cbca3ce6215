#!/usr/bin/env python3
"""
Тесты конфигурации: config/wp-sites.yml + секреты из env (OAuth1 и Basic Auth).

Запуск из корня проекта:
  python tests/test_config.py
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from wpapi.config import load_config, load_sites_list
from wpapi.taxonomy import ConfigurationError

YAML_OK = """\
max_retry_attempts: 3
timeout_sec: 20
sites:
  - site_id: main
    endpoint: https://example.com/wp-json/
    name: Main
  - site_id: dev-box
    endpoint: http://localhost:8080/wp-json
    auth: basic
    max_retry_attempts: 1
"""

ENV_OK = {
    "WP_SITE_MAIN_CLIENT_KEY": "ck",
    "WP_SITE_MAIN_CLIENT_SECRET": "cs",
    "WP_SITE_MAIN_ACCESS_TOKEN": "tok",
    "WP_SITE_MAIN_ACCESS_TOKEN_SECRET": "toks",
    "WP_SITE_DEV_BOX_USER": "admin",
    "WP_SITE_DEV_BOX_APP_PASSWORD": "xxxx xxxx",
}


def _write(text: str) -> Path:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False, encoding="utf-8") as f:
        f.write(text)
        return Path(f.name)


def test_load_config_ok() -> bool:
    path = _write(YAML_OK)
    try:
        with patch.dict(os.environ, ENV_OK):
            cfg = load_config(config_path=path)
        assert cfg.max_retry_attempts == 3
        main = cfg.get_site("main")
        assert main.endpoint == "https://example.com/wp-json"
        assert main.auth == "oauth1"
        assert main.client_key == "ck" and main.access_token_secret == "toks"
        assert main.max_retry_attempts == 3
        assert main.timeout_sec == 20
        dev = cfg.get_site("dev-box")
        assert dev.auth == "basic"
        assert dev.user == "admin"
        assert dev.app_password == "xxxx xxxx"
        assert dev.max_retry_attempts == 1
        return True
    finally:
        path.unlink(missing_ok=True)


def test_missing_secrets() -> bool:
    path = _write(YAML_OK)
    try:
        env = dict(ENV_OK)
        del env["WP_SITE_MAIN_ACCESS_TOKEN"]
        with patch.dict(os.environ, env, clear=True):
            try:
                load_config(config_path=path)
                assert False, "expected ConfigurationError"
            except ConfigurationError as e:
                assert "WP_SITE_MAIN_ACCESS_TOKEN" in str(e)
        return True
    finally:
        path.unlink(missing_ok=True)


def test_missing_token_secret() -> bool:
    path = _write(YAML_OK)
    try:
        env = dict(ENV_OK)
        del env["WP_SITE_MAIN_ACCESS_TOKEN_SECRET"]
        with patch.dict(os.environ, env, clear=True):
            try:
                load_config(config_path=path)
                assert False, "expected ConfigurationError"
            except ConfigurationError as e:
                assert "WP_SITE_MAIN_ACCESS_TOKEN_SECRET" in str(e)
        return True
    finally:
        path.unlink(missing_ok=True)


def test_broken_yaml_is_value_error() -> bool:
    path = _write("sites:\n  - site_id: x\n  bad: indent\n")
    try:
        try:
            load_config(config_path=path)
            assert False, "expected ValueError"
        except ValueError as e:
            assert "YAML" in str(e)
        return True
    finally:
        path.unlink(missing_ok=True)


def test_missing_file_and_fields() -> bool:
    try:
        load_config(config_path=Path("/nonexistent/wp-sites.yml"))
        assert False, "expected ConfigurationError"
    except ConfigurationError:
        pass
    for text in (
        "sites:\n  - endpoint: https://example.com/wp-json\n",
        "sites:\n  - site_id: a\n",
        "sites:\n  - site_id: a\n    endpoint: https://e.com/wp-json\n    auth: jwt\n",
        "max_retry_attempts: many\nsites:\n  - site_id: a\n    endpoint: https://e.com/wp-json\n",
    ):
        path = _write(text)
        try:
            try:
                load_config(config_path=path)
                assert False, f"expected ConfigurationError for {text!r}"
            except ConfigurationError:
                pass
        finally:
            path.unlink(missing_ok=True)
    return True


def test_load_sites_list_without_secrets() -> bool:
    path = _write(YAML_OK)
    try:
        with patch.dict(os.environ, {}, clear=True):
            sites = load_sites_list(path)
        assert [s["site_id"] for s in sites] == ["main", "dev-box"]
        return True
    finally:
        path.unlink(missing_ok=True)


def test_unknown_site() -> bool:
    path = _write(YAML_OK)
    try:
        with patch.dict(os.environ, ENV_OK):
            cfg = load_config(config_path=path)
        try:
            cfg.get_site("nope")
            assert False, "expected ConfigurationError"
        except ConfigurationError as e:
            assert "not found" in str(e)
        return True
    finally:
        path.unlink(missing_ok=True)


def run_all() -> bool:
    cases = [
        ("load config ok", test_load_config_ok),
        ("missing secrets", test_missing_secrets),
        ("missing token secret", test_missing_token_secret),
        ("broken yaml", test_broken_yaml_is_value_error),
        ("missing file/fields", test_missing_file_and_fields),
        ("sites list", test_load_sites_list_without_secrets),
        ("unknown site", test_unknown_site),
    ]
    ok = 0
    for name, fn in cases:
        try:
            if fn():
                ok += 1
                print(f"  OK {name}")
            else:
                print(f"  FAIL {name}")
        except Exception as e:
            print(f"  FAIL {name}: {e}")
    return ok == len(cases)


if __name__ == "__main__":
    print("WP API config tests")
    sys.exit(0 if run_all() else 1)
