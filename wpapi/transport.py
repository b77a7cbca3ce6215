"""Транспорт: одна отправка подготовленного запроса через requests.Session.

Исключения requests переводятся в TransportFailure с числовым кодом из TransportCode,
чтобы исполнитель классифицировал их так же, как HTTP-статусы.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Union

import requests
from requests.structures import CaseInsensitiveDict

from .taxonomy import TransportCode

logger = logging.getLogger("wpapi.transport")


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class TransportFailure:
    code: int
    message: str


TransportOutcome = Union[TransportResponse, TransportFailure]


class Transport(Protocol):
    def send(self, request: requests.PreparedRequest, timeout: Optional[float] = None) -> TransportOutcome:
        ...


def _caused_by_refused(exc: BaseException) -> bool:
    """Пройти по цепочке причин (urllib3 MaxRetryError.reason, __cause__, __context__)."""
    seen = set()
    stack: list = [exc]
    while stack:
        cur = stack.pop()
        if cur is None or id(cur) in seen:
            continue
        seen.add(id(cur))
        if isinstance(cur, ConnectionRefusedError):
            return True
        reason = getattr(cur, "reason", None)
        if isinstance(reason, BaseException):
            stack.append(reason)
        stack.append(cur.__cause__)
        stack.append(cur.__context__)
        stack.extend(a for a in getattr(cur, "args", ()) if isinstance(a, BaseException))
    return "Connection refused" in str(exc)


def transport_code_for(exc: requests.exceptions.RequestException) -> TransportCode:
    """Код транспорта для исключения requests."""
    # ConnectTimeout наследует и ConnectionError, и Timeout: проверять первым
    if isinstance(exc, requests.exceptions.ConnectTimeout):
        return TransportCode.CONNECT_TIMEOUT
    if isinstance(exc, requests.exceptions.Timeout):
        return TransportCode.OPERATION_TIMEOUT
    if isinstance(exc, requests.exceptions.SSLError):
        msg = str(exc).lower()
        if "certificate_verify_failed" in msg or "certificate verify failed" in msg:
            return TransportCode.SSL_PEER_CERTIFICATE
        return TransportCode.SSL_CONNECT_ERROR
    if isinstance(exc, requests.exceptions.ConnectionError) and _caused_by_refused(exc):
        return TransportCode.CONNECTION_REFUSED
    return TransportCode.OTHER


class RequestsTransport:
    """Отправка PreparedRequest через requests.Session."""

    def __init__(self, session: Optional[requests.Session] = None, verify: Any = True):
        self.session = session or requests.Session()
        self.verify = verify

    def send(self, request: requests.PreparedRequest, timeout: Optional[float] = None) -> TransportOutcome:
        try:
            resp = self.session.send(request, timeout=timeout, verify=self.verify, allow_redirects=True)
        except requests.exceptions.RequestException as e:
            code = transport_code_for(e)
            logger.debug("Transport error %s (%s): %s", int(code), code.name, e)
            return TransportFailure(code=int(code), message=str(e))
        return TransportResponse(
            status_code=resp.status_code,
            headers=resp.headers,
            body=resp.content or b"",
        )

    def close(self) -> None:
        self.session.close()
