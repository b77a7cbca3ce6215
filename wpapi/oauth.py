"""Получение access token OAuth1 (плагин WP REST API OAuth1). Выполняется один раз при настройке.

Трёхшаговый поток: oauth1/request -> oauth1/authorize (пользователь в браузере) -> oauth1/access.
URL плагина строятся от адреса сайта, то есть от endpoint без суффикса /wp-json.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from requests_oauthlib import OAuth1Session
from requests_oauthlib.oauth1_session import TokenMissing, TokenRequestDenied

from errors import WP_AUTH_ERROR, WP_NETWORK_ERROR
from .taxonomy import ConfigurationError, WPClientError

logger = logging.getLogger("wpapi.oauth")

API_SUFFIX = "/wp-json"


def site_url(endpoint: str) -> str:
    """Адрес сайта по корню API: https://example.com/wp-json -> https://example.com."""
    base = (endpoint or "").strip().rstrip("/")
    if base.endswith(API_SUFFIX):
        base = base[: -len(API_SUFFIX)]
    return base


@dataclass(frozen=True)
class OAuth1Endpoints:
    request_token_url: str
    authorize_url: str
    access_token_url: str

    @classmethod
    def for_endpoint(cls, endpoint: str) -> "OAuth1Endpoints":
        base = site_url(endpoint)
        if not base:
            raise ConfigurationError("Specify valid endpoint.")
        return cls(
            request_token_url=f"{base}/oauth1/request",
            authorize_url=f"{base}/oauth1/authorize",
            access_token_url=f"{base}/oauth1/access",
        )


class OAuth1Setup:
    """Обмен ключей приложения на access token для WPApiClient."""

    def __init__(
        self,
        endpoint: str,
        client_key: str,
        client_secret: str,
        callback_uri: str = "oob",
        timeout_sec: float = 30,
    ):
        if not client_key or not client_secret:
            raise ConfigurationError("OAuth1 setup requires client_key and client_secret.")
        self.endpoints = OAuth1Endpoints.for_endpoint(endpoint)
        self.client_key = client_key
        self.client_secret = client_secret
        self.callback_uri = callback_uri
        self.timeout_sec = timeout_sec
        self.request_token: Optional[Dict[str, str]] = None

    def _call(self, what: str, fn, url: str, **kwargs) -> Dict[str, str]:
        try:
            return fn(url, timeout=self.timeout_sec, **kwargs)
        except TokenRequestDenied as e:
            logger.warning("OAuth1 %s denied: %s", what, e, extra={"error_code": WP_AUTH_ERROR})
            raise WPClientError(f"OAuth1 {what} denied: {e}", WP_AUTH_ERROR, status_code=e.status_code) from e
        except TokenMissing as e:
            raise WPClientError(f"OAuth1 {what}: token missing in response: {e}", WP_AUTH_ERROR) from e
        except requests.exceptions.RequestException as e:
            logger.warning("OAuth1 %s failed: %s", what, e, extra={"error_code": WP_NETWORK_ERROR})
            raise WPClientError(f"OAuth1 {what} failed: {e}", WP_NETWORK_ERROR) from e

    def fetch_request_token(self) -> Dict[str, str]:
        """Шаг 1: временный request token."""
        session = OAuth1Session(self.client_key, client_secret=self.client_secret, callback_uri=self.callback_uri)
        self.request_token = self._call("request token", session.fetch_request_token, self.endpoints.request_token_url)
        return self.request_token

    def authorization_url(self) -> str:
        """Шаг 2: URL, который пользователь открывает в браузере и получает verifier."""
        if self.request_token is None:
            self.fetch_request_token()
        session = OAuth1Session(
            self.client_key,
            client_secret=self.client_secret,
            resource_owner_key=self.request_token["oauth_token"],
            resource_owner_secret=self.request_token.get("oauth_token_secret"),
        )
        return session.authorization_url(self.endpoints.authorize_url)

    def fetch_access_token(self, verifier: str) -> Dict[str, str]:
        """Шаг 3: {oauth_token, oauth_token_secret} для WPApiClient(access_token=...)."""
        if self.request_token is None:
            raise ConfigurationError("Request token missing: call fetch_request_token() first.")
        session = OAuth1Session(
            self.client_key,
            client_secret=self.client_secret,
            resource_owner_key=self.request_token["oauth_token"],
            resource_owner_secret=self.request_token.get("oauth_token_secret"),
            verifier=verifier,
        )
        token = self._call("access token", session.fetch_access_token, self.endpoints.access_token_url)
        logger.info("OAuth1 access token obtained for %s", self.endpoints.access_token_url)
        return token
