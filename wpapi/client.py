"""Клиент WP REST API: операции по HTTP-глаголам поверх RequestExecutor.

Аутентификация:
- OAuth1 (client_key, client_secret, access_token) — для рабочих сайтов;
- Basic Auth (username, password) — только для разработки.

Каждая операция возвращает сам клиент, результат читается через as_array / as_object / as_raw:

    client.fetch("wp/v2/posts", page=2, page_length=10).as_array()

Последний запрос и ответ хранятся в одном слоте и перезаписываются следующей операцией.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

from .auth import ApiRequest, AuthenticatedRequestBuilder, select_signer
from .config import SiteConfig
from .executor import (
    DEFAULT_MAX_RETRY_ATTEMPTS,
    BackoffHook,
    ExecutionResult,
    Pagination,
    RequestExecutor,
)
from .taxonomy import ConfigurationError
from .transport import RequestsTransport, Transport

logger = logging.getLogger("wpapi.client")

CONTEXTS = ("view", "edit", "embed")


class WPApiClient:
    """Клиент к WordPress REST API с повторами и классификацией ошибок."""

    def __init__(
        self,
        endpoint: str,
        client_key: Optional[str] = None,
        client_secret: Optional[str] = None,
        access_token: Union[str, Mapping[str, str], None] = None,
        access_token_secret: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS,
        timeout_sec: Optional[float] = 30,
        transport: Optional[Transport] = None,
        backoff: Optional[BackoffHook] = None,
        cancel_event: Optional[threading.Event] = None,
        site_id: Optional[str] = None,
    ):
        if not endpoint or not endpoint.strip():
            raise ConfigurationError("Specify valid endpoint.")
        signer = select_signer(
            client_key=client_key,
            client_secret=client_secret,
            access_token=access_token,
            access_token_secret=access_token_secret,
            username=username,
            password=password,
        )
        self.site_id = site_id or ""
        self.builder = AuthenticatedRequestBuilder(endpoint, signer)
        self._transport = transport or RequestsTransport()
        self.executor = RequestExecutor(
            self.builder,
            transport=self._transport,
            max_attempts=max_retry_attempts,
            timeout_sec=timeout_sec,
            backoff=backoff,
            cancel_event=cancel_event,
        )
        self.request: Optional[ApiRequest] = None
        self.result: Optional[ExecutionResult] = None

    @classmethod
    def from_config(cls, site: SiteConfig, **kwargs: Any) -> "WPApiClient":
        """Клиент для сайта из config/wp-sites.yml (секреты уже подставлены из env)."""
        return cls(
            endpoint=site.endpoint,
            client_key=site.client_key,
            client_secret=site.client_secret,
            access_token=site.access_token,
            access_token_secret=site.access_token_secret,
            username=site.user,
            password=site.app_password,
            max_retry_attempts=site.max_retry_attempts,
            timeout_sec=site.timeout_sec,
            site_id=site.site_id,
            **kwargs,
        )

    @property
    def endpoint(self) -> str:
        return self.builder.endpoint

    @property
    def max_retry_attempts(self) -> int:
        return self.executor.retry.max_attempts

    @property
    def retries(self) -> int:
        """Число повторов в последней операции."""
        return self.executor.retry.attempts

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "WPApiClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _run(
        self,
        method: str,
        path: str,
        payload: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
        run_id: Optional[str] = None,
    ) -> "WPApiClient":
        request = self.builder.build(method, path, payload, headers, content)
        self.request = request
        self.result = None
        self.result = self.executor.execute(request, run_id=run_id)
        return self

    @staticmethod
    def _with_context(data: Optional[Mapping[str, Any]], context: str) -> Dict[str, Any]:
        if context not in CONTEXTS:
            raise ValueError(f"context must be one of {CONTEXTS}, got {context!r}")
        payload = dict(data or {})
        payload["context"] = context
        return payload

    # API Interface Methods

    def fetch(
        self,
        path: str,
        context: str = "view",
        page: Optional[int] = None,
        page_length: int = 10,
        params: Optional[Mapping[str, Any]] = None,
        run_id: Optional[str] = None,
    ) -> "WPApiClient":
        """GET коллекции или объекта. page задаётся только если передан.

        context: view (по умолчанию), edit или embed. embed — урезанное представление WP REST API,
        то же, что сервер отдаёт во вложенных объектах _embedded. Другие значения — ValueError.
        """
        payload = self._with_context(params, context)
        payload["per_page"] = page_length
        if page is not None:
            payload["page"] = page
        return self._run("GET", path, payload, run_id=run_id)

    def create(
        self,
        path: str,
        data: Mapping[str, Any],
        context: str = "view",
        run_id: Optional[str] = None,
    ) -> "WPApiClient":
        return self._run("POST", path, self._with_context(data, context), run_id=run_id)

    def replace(
        self,
        path: str,
        data: Mapping[str, Any],
        context: str = "edit",
        run_id: Optional[str] = None,
    ) -> "WPApiClient":
        return self._run("PUT", path, self._with_context(data, context), run_id=run_id)

    def patch(
        self,
        path: str,
        data: Mapping[str, Any],
        context: str = "edit",
        run_id: Optional[str] = None,
    ) -> "WPApiClient":
        return self._run("PATCH", path, self._with_context(data, context), run_id=run_id)

    def remove(self, path: str, force: bool = True, run_id: Optional[str] = None) -> "WPApiClient":
        """DELETE. force=True удаляет без корзины (?force=true)."""
        path = self.builder.normalize(path)
        if force:
            path += "&force=true" if "?" in path else "?force=true"
        return self._run("DELETE", path, run_id=run_id)

    def upload(
        self,
        path: str,
        file_name: str,
        content_type: str,
        data: bytes,
        run_id: Optional[str] = None,
    ) -> "WPApiClient":
        """POST сырого тела файла (например, в wp/v2/media)."""
        headers = {
            "Content-Disposition": f"attachment; filename={file_name}",
            "Content-Type": content_type,
        }
        return self._run("POST", path, headers=headers, content=data, run_id=run_id)

    # API Data response methods

    def as_array(self) -> Any:
        """Тело последнего ответа как dict/list; без ответа — пустой список."""
        if self.result is None:
            return []
        return self.result.as_array()

    def as_object(self) -> Any:
        if self.result is None:
            return None
        return self.result.as_object()

    def as_raw(self) -> Optional[bytes]:
        if self.result is None:
            return None
        return self.result.as_raw()

    def get_last_request_content(self) -> Optional[bytes]:
        """Тело последнего отправленного запроса (JSON или файл). None для GET/DELETE."""
        prepared = self.executor.last_prepared
        if prepared is None or prepared.body is None:
            return None
        body = prepared.body
        return body.encode("utf-8") if isinstance(body, str) else body

    @property
    def pagination(self) -> Pagination:
        if self.result is None:
            return Pagination()
        return self.result.pagination

    @property
    def total_records(self) -> Optional[int]:
        return self.pagination.total

    @property
    def total_pages(self) -> Optional[int]:
        return self.pagination.pages

    @property
    def allowed_methods(self) -> Optional[FrozenSet[str]]:
        if self.result is None:
            return None
        return self.result.allowed_methods
