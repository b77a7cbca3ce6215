"""Исполнитель запросов: цикл повторов и классификация результата.

Состояния: IDLE -> ATTEMPTING -> {SUCCEEDED, RETRYING, FAILED}; RETRYING возвращается в ATTEMPTING.
Отправок не больше max_attempts + 1. Сам исполнитель не спит между попытками:
задержку вставляет хук backoff (см. sleep_backoff).
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from types import SimpleNamespace
from typing import Any, Callable, FrozenSet, Mapping, Optional

import requests
from requests.structures import CaseInsensitiveDict

from errors import CANCELLED
from .auth import ApiRequest, AuthenticatedRequestBuilder
from .taxonomy import (
    ClassifiedError,
    OperationCancelled,
    describe_illegal_response,
    describe_status,
    describe_transport,
    error_for,
    is_error_status,
)
from .transport import RequestsTransport, Transport, TransportFailure

logger = logging.getLogger("wpapi.executor")

DEFAULT_MAX_RETRY_ATTEMPTS = 5
MAX_BACKOFF_SEC = 60.0

# (ошибка последней попытки, номер повтора начиная с 1, Retry-After в секундах или None)
BackoffHook = Callable[[ClassifiedError, int, Optional[float]], None]


class ExecutorState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RetryState:
    max_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS
    attempts: int = 0

    def reset(self) -> None:
        self.attempts = 0

    def can_retry(self) -> bool:
        return self.attempts < self.max_attempts

    def increment(self) -> int:
        self.attempts += 1
        return self.attempts


@dataclass(frozen=True)
class Pagination:
    total: Optional[int] = None
    pages: Optional[int] = None


@dataclass
class ExecutionResult:
    """Успешный ответ. Тело декодируется лениво: as_raw / as_array / as_object."""

    status_code: int
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)
    pagination: Pagination = field(default_factory=Pagination)
    allowed_methods: Optional[FrozenSet[str]] = None

    def as_raw(self) -> bytes:
        return self.body

    def as_array(self) -> Any:
        """dict/list из JSON; пустое тело -> None."""
        if not self.body.strip():
            return None
        return json.loads(self.body)

    def as_object(self) -> Any:
        """JSON-объекты как SimpleNamespace (доступ через атрибуты)."""
        if not self.body.strip():
            return None
        return json.loads(self.body, object_hook=lambda d: SimpleNamespace(**d))


def _int_header(headers: Mapping[str, str], name: str) -> Optional[int]:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def parse_retry_after(headers: Mapping[str, str]) -> Optional[float]:
    """Retry-After в секундах. Формат HTTP-date не поддерживается (None)."""
    headers = CaseInsensitiveDict(headers)
    raw = headers.get("Retry-After")
    if raw is None:
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        return None
    return value if value >= 0 else None


def extract_pagination(headers: Mapping[str, str]) -> Pagination:
    """X-WP-Total / X-WP-TotalPages. Отсутствие или мусор в заголовке — поле не задано."""
    headers = CaseInsensitiveDict(headers)
    return Pagination(total=_int_header(headers, "X-WP-Total"), pages=_int_header(headers, "X-WP-TotalPages"))


def extract_allowed_methods(headers: Mapping[str, str]) -> Optional[FrozenSet[str]]:
    headers = CaseInsensitiveDict(headers)
    raw = headers.get("Allow")
    if raw is None:
        return None
    return frozenset(m.strip().upper() for m in str(raw).split(",") if m.strip())


def backoff_delay(attempt: int, retry_after: Optional[float] = None) -> float:
    """Задержка перед повтором: Retry-After или exponential backoff, кап 60 с."""
    if retry_after is not None and retry_after > 0:
        return min(float(retry_after), MAX_BACKOFF_SEC)
    return min(2.0 ** attempt, MAX_BACKOFF_SEC)


def sleep_backoff(error: ClassifiedError, attempt: int, retry_after: Optional[float]) -> None:
    """Готовый хук backoff: спать backoff_delay() секунд."""
    time.sleep(backoff_delay(attempt, retry_after))


class RequestExecutor:
    """Выполняет одну логическую операцию: отправка, классификация, повторы.

    Один экземпляр — один вызывающий; RetryState и state меняются на каждую операцию.
    """

    def __init__(
        self,
        builder: AuthenticatedRequestBuilder,
        transport: Optional[Transport] = None,
        max_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS,
        timeout_sec: Optional[float] = 30,
        backoff: Optional[BackoffHook] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        self.builder = builder
        self.transport = transport or RequestsTransport()
        self.retry = RetryState(max_attempts=max_attempts)
        self.timeout_sec = timeout_sec
        self.backoff = backoff
        self.cancel_event = cancel_event
        self.state = ExecutorState.IDLE
        self.sent_attempts = 0
        self.last_error: Optional[ClassifiedError] = None
        self.last_prepared: Optional[requests.PreparedRequest] = None

    def _check_cancelled(self, method: str, url: str, run_id: Optional[str]) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.state = ExecutorState.FAILED
            logger.info(
                "WP API operation cancelled: %s %s",
                method,
                url,
                extra={"run_id": run_id, "error_code": CANCELLED},
            )
            raise OperationCancelled(f"Operation cancelled: {method} {url}")

    def _classify(self, request: ApiRequest, url: str, outcome: Any) -> Any:
        """ClassifiedError для неуспешной попытки или ExecutionResult для успешной."""
        if isinstance(outcome, TransportFailure):
            return describe_transport(outcome.code, outcome.message, request.method, url, self.retry.attempts)

        headers = CaseInsensitiveDict(outcome.headers)
        raw_text = outcome.text
        body: Any = None
        decode_error: Optional[ValueError] = None
        if outcome.body.strip():
            try:
                body = json.loads(outcome.body)
            except ValueError as e:
                decode_error = e

        if is_error_status(outcome.status_code):
            # Тело ошибки не JSON — сообщением становится сырой текст
            return describe_status(
                outcome.status_code,
                body,
                raw_text,
                request.method,
                url,
                retry_after=parse_retry_after(headers),
            )

        if decode_error is not None:
            return describe_illegal_response(str(decode_error), raw_text, outcome.status_code, request.method, url)

        return ExecutionResult(
            status_code=outcome.status_code,
            body=outcome.body,
            headers=headers,
            pagination=extract_pagination(headers),
            allowed_methods=extract_allowed_methods(headers),
        )

    def execute(self, request: ApiRequest, run_id: Optional[str] = None) -> ExecutionResult:
        """Выполнить запрос с повторами. При терминальной ошибке — WPApiError (подкласс по виду)."""
        self.retry.reset()
        self.sent_attempts = 0
        self.last_error = None
        self.state = ExecutorState.IDLE
        url = self.builder.url_for(request)

        prepared = None
        while True:
            self._check_cancelled(request.method, url, run_id)
            if prepared is None or self.builder.fresh_per_attempt:
                prepared = self.builder.prepare(request)
            else:
                prepared = prepared.copy()
            self.last_prepared = prepared

            self.state = ExecutorState.ATTEMPTING
            self.sent_attempts += 1
            outcome = self.transport.send(prepared, timeout=self.timeout_sec)
            # отмена во время отправки: ответ не классифицируется и не повторяется
            self._check_cancelled(request.method, url, run_id)
            result = self._classify(request, url, outcome)

            if isinstance(result, ExecutionResult):
                self.state = ExecutorState.SUCCEEDED
                logger.debug(
                    "WP API %s %s -> %s (attempts=%s)",
                    request.method,
                    url,
                    result.status_code,
                    self.sent_attempts,
                    extra={"run_id": run_id},
                )
                return result

            error: ClassifiedError = result
            self.last_error = error
            if error.kind.is_retryable and self.retry.can_retry():
                attempt = self.retry.increment()
                self.state = ExecutorState.RETRYING
                logger.warning(
                    "WP API %s %s failed (%s, code=%s), retry %s/%s",
                    request.method,
                    url,
                    error.kind.value,
                    error.code,
                    attempt,
                    self.retry.max_attempts,
                    extra={"run_id": run_id, "error_code": error.error_code},
                )
                if self.backoff is not None:
                    self.backoff(error, attempt, error.retry_after)
                continue

            if error.kind.is_retryable:
                error = error.mark_exhausted()
                self.last_error = error
            self.state = ExecutorState.FAILED
            logger.error(
                "WP API %s %s failed: %s",
                request.method,
                url,
                error.message,
                extra={"run_id": run_id, "error_code": error.error_code},
            )
            raise error_for(error)
