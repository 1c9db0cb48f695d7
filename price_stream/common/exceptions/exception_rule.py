from __future__ import annotations

import asyncio
import binascii
import struct

import orjson
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from price_stream.common.exceptions.errors import PriceStreamException
from price_stream.core.dto.internal.common import RuleDomain
from price_stream.core.types import ErrorCategory, ErrorCode, ErrorDomain

# 프레임 역직렬화/엔벨로프 검증
DESERIALIZATION_ERRORS = (
    orjson.JSONDecodeError,
    ValueError,
    TypeError,
    KeyError,
    AttributeError,
    ValidationError,
)

# 바이너리 페이로드 디코딩 (base64 / 버퍼 길이 / 입력 형태)
DECODE_ERRORS = (
    binascii.Error,
    struct.error,
    ValueError,
    TypeError,
    IndexError,
    KeyError,
    OverflowError,
)

# 소켓/웹소켓 등
SOCKET_EXCEPTIONS = (
    asyncio.TimeoutError,
    InvalidStatus,
    WebSocketException,
    ConnectionClosed,
    OSError,
)


# 1) 연결 종료 (구체 -> 포괄)
RULES_SOCKET: list[RuleDomain] = [
    RuleDomain(
        kinds=("ws",),
        exc=ConnectionClosed,
        result=(ErrorDomain.CONNECTION, ErrorCode.CONNECTION_CLOSED, True),
    ),
    RuleDomain(
        kinds=("ws",),
        exc=SOCKET_EXCEPTIONS,
        result=(ErrorDomain.CONNECTION, ErrorCode.CONNECT_FAILED, True),
    ),
]

# 2) 프레임/페이로드 규칙
RULES_PAYLOAD: list[RuleDomain] = [
    RuleDomain(
        kinds=("ws",),
        exc=DESERIALIZATION_ERRORS,
        result=(ErrorDomain.PROTOCOL, ErrorCode.DESERIALIZATION_ERROR, False),
    ),
    RuleDomain(
        kinds=("parser",),
        exc=DECODE_ERRORS,
        result=(ErrorDomain.PAYLOAD, ErrorCode.DECODE_ERROR, False),
    ),
]

# 3) 소비자 핸들러 예외는 종류를 가리지 않고 격리
RULES_HANDLER: list[RuleDomain] = [
    RuleDomain(
        kinds=("handler",),
        exc=Exception,
        result=(ErrorDomain.HANDLER, ErrorCode.HANDLER_ERROR, False),
    ),
]

# 주의: 매칭 우선순위를 보장하기 위해 선언 순서를 유지합니다.
RULES: list[RuleDomain] = [
    *RULES_SOCKET,
    *RULES_PAYLOAD,
    *RULES_HANDLER,
]


def classify_exception(err: BaseException, kind: str) -> ErrorCategory:
    """예외 → (ErrorDomain, ErrorCode, retryable) 분류기 (규칙 테이블 기반)

    - 자체 예외는 자신의 구조화 필드를 그대로 사용합니다.
    - 나머지는 "구체 → 포괄" 순서로 선언된 규칙을 순서대로 평가합니다.
    """
    if isinstance(err, PriceStreamException):
        return (err.error_domain, err.error_code, err.retryable)

    for rule in RULES:
        if kind in rule.kinds and isinstance(err, rule.exc):
            return rule.result

    return (ErrorDomain.UNKNOWN, ErrorCode.UNKNOWN_ERROR, False)
