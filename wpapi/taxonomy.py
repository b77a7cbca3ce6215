"""Классификация ошибок WP REST API: виды ошибок, коды транспорта, таблица HTTP-статусов.

Модуль без состояния. Исполнитель запросов (executor) по виду ошибки решает,
повторять запрос или отдать ошибку вызывающему коду.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, Optional

from errors import (
    CANCELLED,
    CONFIG_ERROR,
    WP_AUTH_ERROR,
    WP_DATA_FORMAT_ERROR,
    WP_ITEM_EXISTS,
    WP_NETWORK_ERROR,
    WP_NOT_FOUND,
    WP_RATE_LIMIT,
    WP_REQUEST_ERROR,
)

NONCE_ALREADY_USED = "json_oauth1_nonce_already_used"
TERM_EXISTS = "term_exists"

# Редиректы, которые не считаются ошибкой (requests обычно сам по ним переходит)
BENIGN_REDIRECTS = frozenset({301, 302, 303, 307, 308})


class ErrorKind(str, Enum):
    FATAL = "fatal"
    TRANSIENT = "transient"
    WAIT_AND_RETRY = "wait_and_retry"
    ITEM_EXISTS = "item_exists"
    ITEM_NOT_FOUND = "item_not_found"
    ILLEGAL_RESPONSE = "illegal_response"

    @property
    def is_retryable(self) -> bool:
        """Повторять ли запрос при оставшихся попытках."""
        return self in (ErrorKind.TRANSIENT, ErrorKind.WAIT_AND_RETRY)


class TransportCode(IntEnum):
    """Коды ошибок транспорта. Нумерация libcurl там, где она есть."""

    OTHER = 0
    CONNECTION_REFUSED = 7
    CONNECT_TIMEOUT = 12
    OPERATION_TIMEOUT = 28
    SSL_CONNECT_ERROR = 35
    SSL_PEER_CERTIFICATE = 60


TRANSIENT_TRANSPORT_CODES: FrozenSet[int] = frozenset(
    {
        TransportCode.CONNECTION_REFUSED,
        TransportCode.CONNECT_TIMEOUT,
        TransportCode.OPERATION_TIMEOUT,
        TransportCode.SSL_CONNECT_ERROR,
        TransportCode.SSL_PEER_CERTIFICATE,
    }
)

_STATUS_KINDS: Dict[int, ErrorKind] = {
    304: ErrorKind.FATAL,
    400: ErrorKind.FATAL,
    403: ErrorKind.FATAL,
    404: ErrorKind.ITEM_NOT_FOUND,
    405: ErrorKind.FATAL,
    410: ErrorKind.ITEM_NOT_FOUND,
    415: ErrorKind.FATAL,
    429: ErrorKind.WAIT_AND_RETRY,
    501: ErrorKind.FATAL,
    502: ErrorKind.TRANSIENT,
}


def _body_field(body: Any, name: str) -> Any:
    if isinstance(body, dict):
        return body.get(name)
    return None


def is_error_status(status: int) -> bool:
    """True для статусов, которые надо классифицировать как ошибку (всё кроме 2xx и обычных редиректов)."""
    if 200 <= status < 300:
        return False
    return status not in BENIGN_REDIRECTS


def classify_transport(code: int) -> ErrorKind:
    """Ошибки соединения из allow-list считаются временными, остальные фатальными."""
    if code in TRANSIENT_TRANSPORT_CODES:
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


def classify_status(status: int, body: Any = None) -> Optional[ErrorKind]:
    """Вид ошибки по HTTP-статусу и разобранному телу ответа. None для успешных статусов.

    401 и 500 без тела не различить: nonce OAuth1 можно переподписать и повторить,
    а term_exists означает, что объект уже существует.
    """
    if not is_error_status(status):
        return None
    if status == 401:
        if _body_field(body, "code") == NONCE_ALREADY_USED:
            return ErrorKind.TRANSIENT
        return ErrorKind.FATAL
    if status == 500:
        if _body_field(body, "code") == TERM_EXISTS:
            return ErrorKind.ITEM_EXISTS
        return ErrorKind.FATAL
    return _STATUS_KINDS.get(status, ErrorKind.FATAL)


@dataclass(frozen=True)
class ClassifiedError:
    """Итог неуспешной попытки: вид, код (HTTP-статус или код транспорта), сообщение, контекст запроса."""

    kind: ErrorKind
    code: int
    message: str
    method: str
    url: str
    status_code: Optional[int] = None  # None для ошибок транспорта
    retry_after: Optional[float] = None  # секунды из Retry-After, если сервер прислал
    exhausted: bool = False  # повторы исчерпаны

    @property
    def error_code(self) -> str:
        """Код для поля error_code в логах."""
        if self.kind == ErrorKind.ILLEGAL_RESPONSE:
            return WP_DATA_FORMAT_ERROR
        if self.status_code is None:
            return WP_NETWORK_ERROR
        if self.status_code in (401, 403):
            return WP_AUTH_ERROR
        if self.kind == ErrorKind.WAIT_AND_RETRY:
            return WP_RATE_LIMIT
        if self.kind == ErrorKind.ITEM_NOT_FOUND:
            return WP_NOT_FOUND
        if self.kind == ErrorKind.ITEM_EXISTS:
            return WP_ITEM_EXISTS
        if self.kind == ErrorKind.TRANSIENT:
            return WP_NETWORK_ERROR
        return WP_REQUEST_ERROR

    @property
    def is_fatal(self) -> bool:
        """Ошибка окончательная: неповторяемый вид или исчерпанные повторы."""
        return self.exhausted or not self.kind.is_retryable

    def mark_exhausted(self) -> "ClassifiedError":
        return replace(self, exhausted=True)


def _param_errors(body: Any) -> str:
    data = _body_field(body, "data")
    params = _body_field(data, "params")
    if isinstance(params, dict):
        items = [str(v) for v in params.values()]
    elif isinstance(params, list):
        items = [str(v) for v in params]
    else:
        items = []
    return " | ".join(items)


def describe_status(
    status: int,
    body: Any,
    raw_text: str,
    method: str,
    url: str,
    retry_after: Optional[float] = None,
) -> Optional[ClassifiedError]:
    """Построить ClassifiedError для ответа с ошибочным статусом. None для успешного ответа."""
    kind = classify_status(status, body)
    if kind is None:
        return None

    code = _body_field(body, "code")
    message = _body_field(body, "message")
    error_data = (f" Code: {code}" if code else "") + f" URL: {url}"
    method = method.upper()

    if status == 304:
        text = "Not Modified."
    elif status == 400:
        text = f"Bad Request {message or 'unknown'} Params: {_param_errors(body)}{error_data}"
    elif status == 401 and kind == ErrorKind.TRANSIENT:
        text = f"{message or raw_text}{error_data}"
    elif status == 401:
        text = f"Unauthorized: {message or raw_text}{error_data}"
    elif status == 403:
        text = f"Forbidden: request not allowed.{error_data}"
    elif status == 404:
        text = f"Not found: URL does not exist.{error_data}"
    elif status == 405:
        text = f"Method Not Allowed: incorrect HTTP method {method} provided.{error_data}"
    elif status == 410:
        text = f"Gone: URL has moved.{error_data}"
    elif status == 415:
        text = f"Unsupported Media Type (incorrect HTTP method {method} provided).{error_data}"
    elif status == 429:
        text = f"Too many requests: client is rate limited.{error_data}"
    elif status == 500 and kind == ErrorKind.ITEM_EXISTS:
        text = message or "Internal server error."
    elif status == 500:
        details = f"{code} => " if code else raw_text
        details += message or ""
        data = _body_field(body, "data")
        if data:
            details += f" ({data})"
        text = f"Internal server error: {details}"
    elif status == 501:
        text = f"Not Implemented.{error_data}"
    elif status == 502:
        text = f"Bad Gateway: server has an issue.{error_data}"
    else:
        text = f"Status code {status} returned.{error_data}"

    return ClassifiedError(
        kind=kind,
        code=status,
        message=text,
        method=method,
        url=url,
        status_code=status,
        retry_after=retry_after if kind == ErrorKind.WAIT_AND_RETRY else None,
    )


def describe_transport(code: int, detail: str, method: str, url: str, retries: int = 0) -> ClassifiedError:
    """ClassifiedError для сбоя транспорта (соединение, таймаут, TLS)."""
    return ClassifiedError(
        kind=classify_transport(code),
        code=int(code),
        message=f"HTTP transport error (retried {retries}): {detail} URL: {url}",
        method=method.upper(),
        url=url,
    )


def describe_illegal_response(detail: str, raw_text: str, status: int, method: str, url: str) -> ClassifiedError:
    """ClassifiedError для успешного статуса с телом, которое не разбирается как JSON."""
    return ClassifiedError(
        kind=ErrorKind.ILLEGAL_RESPONSE,
        code=status,
        message=f"Invalid JSON data returned ({detail}): {raw_text[:500]}",
        method=method.upper(),
        url=url,
        status_code=status,
    )


class WPClientError(Exception):
    """Ошибка клиента WP API с привязкой к error_code для логов."""

    def __init__(self, message: str, error_code: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code


class ConfigurationError(WPClientError, ValueError):
    """Нет или неполные учётные данные / endpoint. Возникает до любых сетевых вызовов."""

    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class OperationCancelled(WPClientError):
    """Операция отменена вызывающим кодом; не повторяется."""

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message, CANCELLED)


class WPApiError(WPClientError):
    """Терминальная ошибка операции. Несёт ClassifiedError последней попытки."""

    def __init__(self, error: ClassifiedError):
        super().__init__(error.message, error.error_code, status_code=error.status_code)
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def code(self) -> int:
        return self.error.code

    @property
    def method(self) -> str:
        return self.error.method

    @property
    def url(self) -> str:
        return self.error.url

    @property
    def exhausted(self) -> bool:
        return self.error.exhausted


class RetryableError(WPApiError):
    """Временная ошибка или 429, повторы исчерпаны."""


class ItemNotFoundError(WPApiError):
    pass


class ItemExistsError(WPApiError):
    pass


class IllegalResponseError(WPApiError):
    pass


_ERROR_CLASSES = {
    ErrorKind.TRANSIENT: RetryableError,
    ErrorKind.WAIT_AND_RETRY: RetryableError,
    ErrorKind.ITEM_NOT_FOUND: ItemNotFoundError,
    ErrorKind.ITEM_EXISTS: ItemExistsError,
    ErrorKind.ILLEGAL_RESPONSE: IllegalResponseError,
}


def error_for(error: ClassifiedError) -> WPApiError:
    """Исключение нужного подкласса для ClassifiedError."""
    return _ERROR_CLASSES.get(error.kind, WPApiError)(error)
