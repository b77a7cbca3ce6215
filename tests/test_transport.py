#!/usr/bin/env python3
"""
Тесты транспорта: перевод исключений requests в коды TransportCode, отправка через Session.

Запуск из корня проекта:
  python tests/test_transport.py
"""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import MagicMock

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import requests

from wpapi.taxonomy import TRANSIENT_TRANSPORT_CODES, TransportCode
from wpapi.transport import RequestsTransport, TransportFailure, TransportResponse, transport_code_for

exc = requests.exceptions


def test_transport_codes() -> bool:
    assert transport_code_for(exc.ConnectTimeout("connect timed out")) == TransportCode.CONNECT_TIMEOUT
    assert transport_code_for(exc.ReadTimeout("read timed out")) == TransportCode.OPERATION_TIMEOUT
    assert transport_code_for(exc.SSLError("[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed")) == (
        TransportCode.SSL_PEER_CERTIFICATE
    )
    assert transport_code_for(exc.SSLError("handshake failure")) == TransportCode.SSL_CONNECT_ERROR
    refused = exc.ConnectionError(ConnectionRefusedError(111, "Connection refused"))
    assert transport_code_for(refused) == TransportCode.CONNECTION_REFUSED
    assert transport_code_for(exc.ConnectionError("Name or service not known")) == TransportCode.OTHER
    assert transport_code_for(exc.TooManyRedirects("Exceeded 30 redirects.")) == TransportCode.OTHER
    return True


def test_transient_set() -> bool:
    assert TransportCode.OTHER not in TRANSIENT_TRANSPORT_CODES
    for code in (
        TransportCode.CONNECTION_REFUSED,
        TransportCode.CONNECT_TIMEOUT,
        TransportCode.OPERATION_TIMEOUT,
        TransportCode.SSL_CONNECT_ERROR,
        TransportCode.SSL_PEER_CERTIFICATE,
    ):
        assert code in TRANSIENT_TRANSPORT_CODES
    return True


def test_send_maps_failure() -> bool:
    session = MagicMock()
    session.send.side_effect = exc.ReadTimeout("read timed out")
    transport = RequestsTransport(session=session)
    out = transport.send(MagicMock(), timeout=3)
    assert isinstance(out, TransportFailure)
    assert out.code == TransportCode.OPERATION_TIMEOUT
    assert session.send.call_args.kwargs["timeout"] == 3
    return True


def test_send_returns_response() -> bool:
    resp = MagicMock()
    resp.status_code = 200
    resp.headers = {"X-WP-Total": "1"}
    resp.content = b"[]"
    session = MagicMock()
    session.send.return_value = resp
    out = RequestsTransport(session=session).send(MagicMock())
    assert isinstance(out, TransportResponse)
    assert out.status_code == 200
    assert out.text == "[]"
    assert out.headers["X-WP-Total"] == "1"
    return True


def run_all() -> bool:
    cases = [
        ("transport codes", test_transport_codes),
        ("transient set", test_transient_set),
        ("send maps failure", test_send_maps_failure),
        ("send returns response", test_send_returns_response),
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
    print("WP API transport tests")
    sys.exit(0 if run_all() else 1)
