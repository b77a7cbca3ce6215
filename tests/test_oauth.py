#!/usr/bin/env python3
"""
Тесты настройки OAuth1: URL плагина, шаги request/authorize/access (OAuth1Session замокан).

Запуск из корня проекта:
  python tests/test_oauth.py
"""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import requests

from errors import WP_AUTH_ERROR, WP_NETWORK_ERROR
from wpapi.oauth import OAuth1Endpoints, OAuth1Setup, site_url
from wpapi.taxonomy import ConfigurationError, WPClientError


def test_site_url_and_endpoints() -> bool:
    assert site_url("https://example.com/wp-json") == "https://example.com"
    assert site_url("https://example.com/wp-json/") == "https://example.com"
    assert site_url("https://example.com/blog") == "https://example.com/blog"
    ep = OAuth1Endpoints.for_endpoint("https://example.com/wp-json")
    assert ep.request_token_url == "https://example.com/oauth1/request"
    assert ep.authorize_url == "https://example.com/oauth1/authorize"
    assert ep.access_token_url == "https://example.com/oauth1/access"
    return True


def test_requires_keys() -> bool:
    try:
        OAuth1Setup("https://example.com/wp-json", "", "secret")
        assert False, "expected ConfigurationError"
    except ConfigurationError:
        pass
    setup = OAuth1Setup("https://example.com/wp-json", "ck", "cs")
    try:
        setup.fetch_access_token("verifier")
        assert False, "expected ConfigurationError"
    except ConfigurationError:
        pass
    return True


def test_full_flow() -> bool:
    session = MagicMock()
    session.fetch_request_token.return_value = {"oauth_token": "rt", "oauth_token_secret": "rts"}
    session.authorization_url.return_value = "https://example.com/oauth1/authorize?oauth_token=rt"
    session.fetch_access_token.return_value = {"oauth_token": "at", "oauth_token_secret": "ats"}
    with patch("wpapi.oauth.OAuth1Session", return_value=session) as cls:
        setup = OAuth1Setup("https://example.com/wp-json", "ck", "cs", timeout_sec=5)
        url = setup.authorization_url()
        token = setup.fetch_access_token("v123")
    assert url.endswith("oauth_token=rt")
    assert token == {"oauth_token": "at", "oauth_token_secret": "ats"}
    session.fetch_request_token.assert_called_once_with("https://example.com/oauth1/request", timeout=5)
    session.fetch_access_token.assert_called_once_with("https://example.com/oauth1/access", timeout=5)
    last_kwargs = cls.call_args_list[-1].kwargs
    assert last_kwargs["verifier"] == "v123"
    assert last_kwargs["resource_owner_key"] == "rt"
    return True


def test_errors_wrapped() -> bool:
    from requests_oauthlib.oauth1_session import TokenRequestDenied

    resp = MagicMock()
    resp.status_code = 401
    session = MagicMock()
    session.fetch_request_token.side_effect = TokenRequestDenied("denied", resp)
    with patch("wpapi.oauth.OAuth1Session", return_value=session):
        try:
            OAuth1Setup("https://example.com/wp-json", "ck", "cs").fetch_request_token()
            assert False, "expected WPClientError"
        except WPClientError as e:
            assert e.error_code == WP_AUTH_ERROR
            assert e.status_code == 401

    session.fetch_request_token.side_effect = requests.exceptions.ConnectionError("refused")
    with patch("wpapi.oauth.OAuth1Session", return_value=session):
        try:
            OAuth1Setup("https://example.com/wp-json", "ck", "cs").fetch_request_token()
            assert False, "expected WPClientError"
        except WPClientError as e:
            assert e.error_code == WP_NETWORK_ERROR
    return True


def run_all() -> bool:
    cases = [
        ("site url / endpoints", test_site_url_and_endpoints),
        ("requires keys", test_requires_keys),
        ("full flow", test_full_flow),
        ("errors wrapped", test_errors_wrapped),
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
    print("WP API OAuth1 setup tests")
    sys.exit(0 if run_all() else 1)
