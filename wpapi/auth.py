"""Сборка аутентифицированных запросов к WP REST API.

Два варианта подписи:
- OAuth1 (плагин WP REST API OAuth1) — для рабочих сайтов;
- Basic Auth (плагин Basic-Auth или Application Passwords) — только для разработки.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Tuple, Union

import requests
from requests.auth import HTTPBasicAuth
from requests_oauthlib import OAuth1

from .taxonomy import ConfigurationError

logger = logging.getLogger("wpapi.auth")

ALLOWED_METHODS = ("GET", "PUT", "PATCH", "POST", "DELETE")
# Для этих методов подпись OAuth1 идёт в заголовке Authorization, для GET — в query string
OAUTH1_HEADER_METHODS = ("POST", "PATCH", "PUT", "DELETE")
# GET и DELETE передают payload в query string, остальные — JSON-телом
QUERY_METHODS = ("GET", "DELETE")

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "wpapi/0.1 (+python-requests)",
}


@dataclass(frozen=True)
class ApiRequest:
    """Неизменяемое описание запроса. Подпись делается отдельно на каждую попытку."""

    method: str
    path: str
    payload: Tuple[Tuple[str, Any], ...] = ()
    headers: Tuple[Tuple[str, str], ...] = ()
    content: Optional[bytes] = None

    @property
    def params(self) -> dict:
        return dict(self.payload)


def normalize_path(endpoint: str, path: str) -> str:
    """Убрать из path ведущий endpoint и '/'. Повторная нормализация ничего не меняет."""
    base = (endpoint or "").rstrip("/")
    if base:
        if path.startswith(base + "/"):
            path = path[len(base) + 1:]
        elif path == base:
            path = ""
    return path.lstrip("/")


class Signer(Protocol):
    """Подпись одной попытки запроса."""

    # True: подпись одноразовая (nonce/timestamp), перед повтором запрос подписывается заново
    fresh_per_attempt: bool

    def sign(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        ...


class BasicSigner:
    """Authorization: Basic base64(user:password). Не использовать в недоверенных сетях."""

    fresh_per_attempt = False

    def __init__(self, username: str, password: str):
        self._auth = HTTPBasicAuth(username, password)
        logger.warning(
            "Basic Auth is for development only; credentials are sent with every request, "
            "do not use it over untrusted networks",
        )

    def sign(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        return self._auth(request)


class OAuth1Signer:
    """Подпись HMAC-SHA1 через requests_oauthlib: новый nonce и timestamp на каждую подпись."""

    fresh_per_attempt = True

    def __init__(
        self,
        client_key: str,
        client_secret: str,
        token: str,
        token_secret: Optional[str] = None,
    ):
        self.client_key = client_key
        self.client_secret = client_secret
        self.token = token
        self.token_secret = token_secret

    def sign(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        method = (request.method or "GET").upper()
        signature_type = "AUTH_HEADER" if method in OAUTH1_HEADER_METHODS else "QUERY"
        auth = OAuth1(
            self.client_key,
            client_secret=self.client_secret,
            resource_owner_key=self.token,
            resource_owner_secret=self.token_secret,
            signature_type=signature_type,
        )
        return auth(request)


def _split_access_token(
    access_token: Union[str, Mapping[str, str], None],
    access_token_secret: Optional[str],
) -> Tuple[Optional[str], Optional[str]]:
    """access_token строкой или словарём {oauth_token, oauth_token_secret} (как отдаёт oauth1/access)."""
    if isinstance(access_token, Mapping):
        return access_token.get("oauth_token"), access_token.get("oauth_token_secret") or access_token_secret
    return access_token, access_token_secret


def select_signer(
    client_key: Optional[str] = None,
    client_secret: Optional[str] = None,
    access_token: Union[str, Mapping[str, str], None] = None,
    access_token_secret: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> Signer:
    """OAuth1 при полном наборе ключей, иначе Basic Auth. Без учётных данных — ConfigurationError."""
    token, token_secret = _split_access_token(access_token, access_token_secret)
    if client_key and client_secret and token:
        if not token_secret:
            raise ConfigurationError("OAuth1 access_token requires access_token_secret.")
        return OAuth1Signer(client_key, client_secret, token, token_secret)
    if username and password:
        return BasicSigner(username, password)
    raise ConfigurationError(
        "Either specify client_key, client_secret & access_token for OAuth1 [production] "
        "or username and password for basic auth [development only]."
    )


class AuthenticatedRequestBuilder:
    """Собирает ApiRequest и готовит подписанный PreparedRequest для каждой попытки."""

    def __init__(self, endpoint: str, signer: Signer):
        if not endpoint or not endpoint.strip():
            raise ConfigurationError("Specify valid endpoint.")
        self.endpoint = endpoint.strip().rstrip("/")
        self.signer = signer

    @classmethod
    def from_credentials(cls, endpoint: str, **credentials: Any) -> "AuthenticatedRequestBuilder":
        if not endpoint or not endpoint.strip():
            raise ConfigurationError("Specify valid endpoint.")
        return cls(endpoint, select_signer(**credentials))

    @property
    def fresh_per_attempt(self) -> bool:
        return self.signer.fresh_per_attempt

    def normalize(self, path: str) -> str:
        return normalize_path(self.endpoint, path)

    def url_for(self, request: ApiRequest) -> str:
        return f"{self.endpoint}/{request.path}"

    def build(
        self,
        method: str,
        path: str,
        payload: Optional[Mapping[str, Any]] = None,
        extra_headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
    ) -> ApiRequest:
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        return ApiRequest(
            method=method,
            path=self.normalize(path),
            payload=tuple((payload or {}).items()),
            headers=tuple((extra_headers or {}).items()),
            content=content,
        )

    def prepare(self, request: ApiRequest) -> requests.PreparedRequest:
        """Подготовить и подписать одну попытку запроса."""
        headers = dict(DEFAULT_HEADERS)
        headers.update(dict(request.headers))
        params = None
        json_body = None
        if request.content is not None:
            params = request.params or None
        elif request.method in QUERY_METHODS:
            params = request.params or None
        else:
            json_body = request.params
        prepared = requests.Request(
            method=request.method,
            url=self.url_for(request),
            params=params,
            json=json_body,
            data=request.content,
            headers=headers,
        ).prepare()
        return self.signer.sign(prepared)
