from __future__ import annotations

import binascii
import struct

import orjson
import pytest
from websockets.exceptions import ConnectionClosedError

from price_stream.common.exceptions.errors import (
    ConnectFailedError,
    SubscriptionTimeoutError,
)
from price_stream.common.exceptions.exception_rule import classify_exception
from price_stream.core.types import ErrorCode, ErrorDomain


def _json_error() -> orjson.JSONDecodeError:
    try:
        orjson.loads("{not json")
    except orjson.JSONDecodeError as e:
        return e
    raise AssertionError("unreachable")


@pytest.mark.parametrize(
    ("err", "kind", "expected"),
    [
        (ConnectionClosedError(None, None), "ws", (ErrorDomain.CONNECTION, ErrorCode.CONNECTION_CLOSED, True)),
        (OSError("refused"), "ws", (ErrorDomain.CONNECTION, ErrorCode.CONNECT_FAILED, True)),
        (TimeoutError(), "ws", (ErrorDomain.CONNECTION, ErrorCode.CONNECT_FAILED, True)),
        (_json_error(), "ws", (ErrorDomain.PROTOCOL, ErrorCode.DESERIALIZATION_ERROR, False)),
        (binascii.Error("bad padding"), "parser", (ErrorDomain.PAYLOAD, ErrorCode.DECODE_ERROR, False)),
        (struct.error("short buffer"), "parser", (ErrorDomain.PAYLOAD, ErrorCode.DECODE_ERROR, False)),
        (RuntimeError("boom"), "handler", (ErrorDomain.HANDLER, ErrorCode.HANDLER_ERROR, False)),
        (RuntimeError("boom"), "ws", (ErrorDomain.UNKNOWN, ErrorCode.UNKNOWN_ERROR, False)),
    ],
)
def test_classify_exception_rules(err: BaseException, kind: str, expected: tuple) -> None:
    assert classify_exception(err, kind) == expected


def test_own_exceptions_use_their_fields() -> None:
    assert classify_exception(ConnectFailedError("x"), "handler") == (
        ErrorDomain.CONNECTION,
        ErrorCode.CONNECT_FAILED,
        True,
    )
    assert classify_exception(SubscriptionTimeoutError("x"), "ws") == (
        ErrorDomain.SUBSCRIPTION,
        ErrorCode.ACK_TIMEOUT,
        True,
    )


def test_exception_to_dict_includes_original() -> None:
    err = ConnectFailedError("failed to connect", OSError("refused"))

    payload = err.to_dict()

    assert str(err) == "failed to connect"
    assert payload["error_type"] == "ConnectFailedError"
    assert payload["error_code"] == "connect_failed"
    assert payload["original_error"] == "refused"
    assert payload["original_error_type"] == "OSError"
